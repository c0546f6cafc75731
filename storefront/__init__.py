"""
storefront: order lifecycle and payment reconciliation.

The package is organised in layers:

- ``storefront.domain``: Money, OrderItem, Order and Payment aggregates, the
  reconciliation rules and the domain events they raise
- ``storefront.repositories``: collaborator protocols (repositories, unit of
  work, event publisher, payment gateway)
- ``storefront.repos.memory``: in-memory implementations of those protocols
- ``storefront.usecase``: orchestration of domain operations inside a unit of
  work
- ``storefront.api``: FastAPI surface over the use cases
"""
