"""Business logic services.

Services take an AsyncSession and raise krafts.core.errors.ServiceError
subclasses; routers and the chat gateway translate those for clients.
"""
