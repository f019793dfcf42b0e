from typing import Literal, Optional, Union

from pydantic import BaseModel

FileType = Literal["folder", "document", "spreadsheet", "presentation", "pdf", "image", "file"]


class FileListItem(BaseModel):
    id: int
    name: str
    type: str
    size: str
    modified: str
    owner: str
    starred: bool
    shared: bool = False
    path: Optional[str] = None
    parentFolderId: Optional[int] = None


class CreateFolderRequest(BaseModel):
    # Missing and blank names both get a 400
    name: Optional[str] = None
    parentFolderId: Optional[Union[int, str]] = None


class CreatedItemResponse(BaseModel):
    id: int
    name: str
    type: FileType
    size: str
    path: str
    parentFolderId: Optional[int] = None
    message: str


class DeleteResponse(BaseModel):
    message: str
    deletedCount: int


class RestoreResponse(BaseModel):
    message: str
    restoredCount: int


class PurgeResponse(BaseModel):
    message: str
    removedCount: int


class StarResponse(BaseModel):
    starred: bool


class StorageResponse(BaseModel):
    used: int
    total: int
    usedFormatted: str
    totalFormatted: str
    percentage: float
