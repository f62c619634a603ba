"""
Pull Request Models
Pydantic models describing the patch set handed to the repository host.
"""
from typing import List, Literal

from pydantic import BaseModel


class FileChange(BaseModel):
    path: str
    content: str
    operation: Literal["create", "update"] = "update"


class PRData(BaseModel):
    # Repository info
    owner: str
    repo: str
    base_branch: str = "main"

    # PR details
    title: str
    description: str
    branch_name: str

    changes: List[FileChange] = []

    commit_message: str
    labels: List[str] = []


class CreatedPR(BaseModel):
    url: str
    number: int
    branch_name: str
    files_changed: int
