"""Base repository with common CRUD operations"""
import logging
from typing import Generic, TypeVar, Type, Optional, List, Dict, Any

import httpx
from postgrest.exceptions import APIError  # type: ignore
from pydantic import BaseModel
from supabase import Client  # type: ignore

from app.errors import TransientError

logger = logging.getLogger(__name__)

T = TypeVar('T', bound=BaseModel)
CreateT = TypeVar('CreateT', bound=BaseModel)
UpdateT = TypeVar('UpdateT', bound=BaseModel)


class BaseRepository(Generic[T, CreateT, UpdateT]):
    """
    Base repository providing common database operations.
    Hides Supabase implementation details from the rest of the application.

    Every query goes through _execute so that backing-store and network
    failures surface as TransientError instead of driver exceptions.
    """

    def __init__(self, client: Client, table_name: str, model_class: Type[T], id_column: str = "id"):
        self._client = client
        self._table_name = table_name
        self._model_class = model_class
        self._id_column = id_column

    def _to_model(self, data: Dict[str, Any]) -> T:
        """Convert database dict to domain model"""
        return self._model_class(**data)

    def _to_models(self, data: List[Dict[str, Any]]) -> List[T]:
        """Convert list of database dicts to domain models"""
        return [self._to_model(item) for item in data]

    def _table(self):
        return self._client.table(self._table_name)

    def _execute(self, query):
        """Run a PostgREST query, translating failures into TransientError"""
        try:
            return query.execute()
        except APIError as e:
            logger.error(f"Supabase error on {self._table_name}: {e}")
            raise TransientError(f"Backing store rejected the request on {self._table_name}") from e
        except httpx.HTTPError as e:
            logger.error(f"Network error on {self._table_name}: {e}")
            raise TransientError(f"Backing store unreachable for {self._table_name}") from e

    async def find_by_id(self, id: str) -> Optional[T]:
        """Find a single record by its key column"""
        response = self._execute(self._table().select("*").eq(self._id_column, id))

        if not response.data:
            return None

        return self._to_model(response.data[0])

    async def find_by_filters(
        self,
        filters: Dict[str, Any],
        order_by: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[T]:
        """Find records matching filters"""
        query = self._table().select("*")

        for key, value in filters.items():
            query = query.eq(key, value)

        if order_by:
            query = query.order(order_by, desc=False)

        if limit:
            query = query.limit(limit)

        response = self._execute(query)
        return self._to_models(response.data)

    async def create(self, data: CreateT) -> T:
        """Create a new record"""
        data_dict = data.model_dump(exclude_unset=True, mode='json')
        response = self._execute(self._table().insert(data_dict))

        if not response.data:
            raise TransientError(f"Failed to create record in {self._table_name}")

        return self._to_model(response.data[0])

    async def update(self, id: str, data: UpdateT) -> Optional[T]:
        """Update a record by its key column"""
        data_dict = data.model_dump(exclude_unset=True, mode='json')

        if not data_dict:
            # No fields to update
            return await self.find_by_id(id)

        response = self._execute(self._table().update(data_dict).eq(self._id_column, id))

        if not response.data:
            return None

        return self._to_model(response.data[0])
