"""
Schema introspection of entity models.

Walks an entity model's fields once and flattens them into property
descriptors keyed by dotted path.
"""

import logging
from typing import Dict, List, Mapping, Optional, Tuple, Type

from pydantic import BaseModel

from elastic_wrapper.core.errors import ElasticConfigurationError
from elastic_wrapper.core.markers import DEFAULT_ORDER_KEY, ElasticAggregate, find_marker
from elastic_wrapper.core.models import PropertyDescriptor
from elastic_wrapper.schema.type_mappings import TypeMapper

logger = logging.getLogger(__name__)


class SchemaIntrospector:
    """
    Builds the property descriptors of an entity model.

    Descriptors are computed on first access and cached; the returned tuple
    is shared read-only by every compiler call for this entity.
    """

    def __init__(
        self,
        entity_type: Type[BaseModel],
        aggregates: Optional[Mapping[str, ElasticAggregate]] = None,
    ):
        """
        Initialize schema introspector.

        Args:
            entity_type: Pydantic model describing the stored document
            aggregates: Aggregation configuration keyed by property path,
                in addition to ``ElasticAggregate`` field markers

        Raises:
            ElasticConfigurationError: If the entity is not a model or the
                aggregation configuration is malformed
        """
        if not TypeMapper.is_structured(entity_type):
            raise ElasticConfigurationError(
                f"Entity type must be a pydantic model, got {entity_type!r}"
            )

        self.entity_type = entity_type
        self.aggregates: Dict[str, ElasticAggregate] = dict(aggregates or {})
        self._validate_aggregates()
        self._cached_descriptors: Optional[Tuple[PropertyDescriptor, ...]] = None

    def build(self) -> Tuple[PropertyDescriptor, ...]:
        """
        Get the flattened property descriptors.

        Returns:
            Descriptors in declaration order, parents before their children
        """
        if self._cached_descriptors is None:
            descriptors: List[PropertyDescriptor] = []
            self._add_properties(self.entity_type, None, descriptors, [])

            known_paths = {d.full_path for d in descriptors}
            missing = sorted(set(self.aggregates) - known_paths)
            if missing:
                raise ElasticConfigurationError(
                    f"Aggregation configured on unknown properties of "
                    f"{self.entity_type.__name__}: {', '.join(missing)}"
                )

            self._cached_descriptors = tuple(descriptors)
            logger.debug(
                "Introspected %s: %d properties, %d aggregation targets",
                self.entity_type.__name__,
                len(descriptors),
                sum(1 for d in descriptors if d.is_aggregate_target),
            )
        return self._cached_descriptors

    def _add_properties(
        self,
        model: Type[BaseModel],
        current_path: Optional[str],
        descriptors: List[PropertyDescriptor],
        stack: List[type],
    ) -> None:
        """Recursively add descriptors for the fields of ``model``."""
        stack.append(model)

        for field_name, field_info in model.model_fields.items():
            full_path = f"{current_path}.{field_name}" if current_path else field_name
            prop_type = TypeMapper.unwrap_optional(field_info.annotation)

            aggregate = self.aggregates.get(full_path) or find_marker(
                field_info.metadata, ElasticAggregate
            )

            descriptors.append(
                PropertyDescriptor(
                    declaring_type=model.__name__,
                    name=field_name,
                    full_path=full_path,
                    value_type=prop_type,
                    nested_path=current_path,
                    keyword=TypeMapper.is_keyword(prop_type),
                    is_aggregate_target=aggregate is not None,
                    aggregate_group_by_path=aggregate.group_by if aggregate else None,
                    aggregate_order_key=aggregate.order if aggregate else DEFAULT_ORDER_KEY,
                )
            )

            # Sequences do not add a path segment of their own
            target = prop_type
            if TypeMapper.is_sequence(prop_type):
                target = TypeMapper.element_type(prop_type)

            if TypeMapper.is_structured(target):
                if target in stack:
                    logger.debug(
                        "Not descending into %s at %s: type cycle", target.__name__, full_path
                    )
                    continue
                self._add_properties(target, full_path, descriptors, stack)

        stack.pop()

    def _validate_aggregates(self) -> None:
        for path, aggregate in self.aggregates.items():
            if not isinstance(aggregate, ElasticAggregate):
                raise ElasticConfigurationError(
                    f"Aggregation for '{path}' must be an ElasticAggregate, got {aggregate!r}"
                )
            if not aggregate.order:
                raise ElasticConfigurationError(f"Aggregation for '{path}' has an empty order key")
