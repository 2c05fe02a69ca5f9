from .tenancy import Organization
from .auth import User, Role, UserRole, Permission, RolePermission, SessionToken, UserPermissionOverride
from .security import SecurityEvent
from .crm import Business, Contact, Note
from .inventory import Product, ProductInstance, BusinessProduct
from .quotes import Quote, QuoteItem
from .communications import Task, Message
from .documents import Document

__all__ = [
    'Organization',
    'User', 'Role', 'UserRole', 'Permission', 'RolePermission',
    'SessionToken', 'UserPermissionOverride', 'SecurityEvent',
    'Business', 'Contact', 'Note',
    'Product', 'ProductInstance', 'BusinessProduct',
    'Quote', 'QuoteItem',
    'Task', 'Message',
    'Document',
]
