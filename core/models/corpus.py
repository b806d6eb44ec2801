"""
Corpus Models - Build Input.

A build is started with a list of corpora. Each corpus pairs source and
target files and says which texts to train on and which to pretranslate.
The files themselves are read by the corpus collaborators (jobs.collaborators).

Exports:
    CorpusFile
    Corpus
"""

from typing import List, Set
from pydantic import BaseModel, ConfigDict, Field


class CorpusFile(BaseModel):
    """One file of a corpus, addressed by location in shared storage."""

    model_config = ConfigDict(extra="forbid")

    location: str = Field(..., min_length=1)
    format: str = Field(default="text", description="text | paratext")
    text_id: str = Field(..., min_length=1)


class Corpus(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    source_language: str
    target_language: str
    train_on_all: bool = False
    pretranslate_all: bool = False
    train_on_text_ids: Set[str] = Field(default_factory=set)
    pretranslate_text_ids: Set[str] = Field(default_factory=set)
    source_files: List[CorpusFile] = Field(default_factory=list)
    target_files: List[CorpusFile] = Field(default_factory=list)

    def is_train_text(self, text_id: str) -> bool:
        return self.train_on_all or text_id in self.train_on_text_ids

    def is_pretranslate_text(self, text_id: str) -> bool:
        return self.pretranslate_all or text_id in self.pretranslate_text_ids
