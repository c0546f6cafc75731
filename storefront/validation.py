"""
Runtime validation of collaborator contracts.

Use cases receive their collaborators by injection. These helpers check, at
construction time, that each one satisfies its ``@runtime_checkable``
Protocol so that a misconfigured dependency fails at startup rather than in
the middle of a command.
"""

import logging
from typing import Any, Type, TypeVar

logger = logging.getLogger(__name__)

P = TypeVar("P")


class RepositoryValidationError(Exception):
    """Raised when a collaborator does not satisfy its protocol"""

    pass


def validate_repository_protocol(
    repository: object, protocol: Type[P]
) -> None:
    """
    Validate that an implementation satisfies a protocol contract.

    Args:
        repository: The implementation to validate
        protocol: The protocol class to validate against

    Raises:
        RepositoryValidationError: If validation fails

    Example:
        >>> from storefront.repos.memory import MemoryEventPublisher
        >>> from storefront.repositories import EventPublisher
        >>> validate_repository_protocol(MemoryEventPublisher(), EventPublisher)
    """
    logger.debug(
        "Validating repository protocol",
        extra={
            "repository_type": type(repository).__name__,
            "protocol_name": protocol.__name__,
        },
    )

    if not isinstance(repository, protocol):
        error_message = (
            f"Repository {type(repository).__name__} does not implement "
            f"{protocol.__name__} protocol. Missing or incorrect methods."
        )

        logger.error(
            "Repository protocol validation failed",
            extra={
                "repository_type": type(repository).__name__,
                "protocol_name": protocol.__name__,
            },
        )

        raise RepositoryValidationError(error_message)


def ensure_repository_protocol(repository: object, protocol: Type[P]) -> P:
    """
    Validate and return an implementation with proper type annotation.

    Raises:
        RepositoryValidationError: If validation fails
    """
    validate_repository_protocol(repository, protocol)
    return repository  # type: ignore[return-value]


def ensure_order_repository(repo: object) -> Any:
    """Ensure an object satisfies the OrderRepository protocol"""
    from storefront.repositories import OrderRepository

    return ensure_repository_protocol(repo, OrderRepository)  # type: ignore[type-abstract]


def ensure_payment_repository(repo: object) -> Any:
    """Ensure an object satisfies the PaymentRepository protocol"""
    from storefront.repositories import PaymentRepository

    return ensure_repository_protocol(repo, PaymentRepository)  # type: ignore[type-abstract]


def ensure_unit_of_work(unit_of_work: object) -> Any:
    """Ensure an object satisfies the UnitOfWork protocol, repositories
    included"""
    from storefront.repositories import UnitOfWork

    validated = ensure_repository_protocol(unit_of_work, UnitOfWork)  # type: ignore[type-abstract]
    ensure_order_repository(validated.orders)
    ensure_payment_repository(validated.payments)
    return validated


def ensure_event_publisher(publisher: object) -> Any:
    """Ensure an object satisfies the EventPublisher protocol"""
    from storefront.repositories import EventPublisher

    return ensure_repository_protocol(publisher, EventPublisher)  # type: ignore[type-abstract]


def ensure_payment_gateway(gateway: object) -> Any:
    """Ensure an object satisfies the PaymentGateway protocol"""
    from storefront.repositories import PaymentGateway

    return ensure_repository_protocol(gateway, PaymentGateway)  # type: ignore[type-abstract]
