"""
In-Memory Engine Repository.

Single-process implementation of IEngineRepository used by the "memory"
storage backend and by the test suite. Every operation holds one
asyncio.Lock, so find-one-and-update is atomic with respect to other
coroutines in the same event loop.

Stored records are copies; callers never get a reference they could
mutate behind the repository's back.

Exports:
    InMemoryEngineRepository
"""

import asyncio
from typing import Dict, List, Optional

from core.models import TranslationEngine
from core.schema.updates import EngineFilter, EngineUpdateModel, apply_update
from exceptions import DatabaseError
from util_logger import LoggerFactory, ComponentType

from .interface_repository import IEngineRepository


class InMemoryEngineRepository(IEngineRepository):
    """
    Dict-backed engine store keyed by engine_id (insertion ordered).
    """

    def __init__(self):
        self._engines: Dict[str, TranslationEngine] = {}
        self._lock = asyncio.Lock()
        self.logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "InMemoryEngineRepository")

    def _first_match(self, engine_filter: EngineFilter) -> Optional[TranslationEngine]:
        if engine_filter.engine_id is not None:
            engine = self._engines.get(engine_filter.engine_id)
            return engine if engine is not None and engine_filter.matches(engine) else None
        for engine in self._engines.values():
            if engine_filter.matches(engine):
                return engine
        return None

    async def get(self, engine_filter: EngineFilter) -> Optional[TranslationEngine]:
        async with self._lock:
            engine = self._first_match(engine_filter)
            return engine.model_copy(deep=True) if engine is not None else None

    async def get_all(self, engine_filter: EngineFilter) -> List[TranslationEngine]:
        async with self._lock:
            return [
                engine.model_copy(deep=True)
                for engine in self._engines.values()
                if engine_filter.matches(engine)
            ]

    async def exists(self, engine_filter: EngineFilter) -> bool:
        async with self._lock:
            return self._first_match(engine_filter) is not None

    async def insert(self, engine: TranslationEngine) -> None:
        async with self._lock:
            if engine.engine_id in self._engines:
                raise DatabaseError(f"Engine '{engine.engine_id}' already exists")
            self._engines[engine.engine_id] = engine.model_copy(deep=True)
        self.logger.debug(f"➕ Inserted engine {engine.engine_id}")

    async def update(
        self,
        engine_filter: EngineFilter,
        update: EngineUpdateModel,
        return_original: bool = False
    ) -> Optional[TranslationEngine]:
        async with self._lock:
            original = self._first_match(engine_filter)
            if original is None:
                self.logger.debug(f"⏭️ Update matched nothing: {engine_filter.to_dict()}")
                return None
            updated = apply_update(original, update)
            self._engines[original.engine_id] = updated
            self.logger.debug(
                f"✏️ Updated engine {original.engine_id}: {update.to_dict()}"
            )
            result = original if return_original else updated
            return result.model_copy(deep=True)

    async def delete(self, engine_filter: EngineFilter) -> Optional[TranslationEngine]:
        async with self._lock:
            engine = self._first_match(engine_filter)
            if engine is None:
                return None
            del self._engines[engine.engine_id]
        self.logger.debug(f"🗑️ Deleted engine {engine.engine_id}")
        return engine
