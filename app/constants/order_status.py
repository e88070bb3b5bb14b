PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"
PAYMENT_FAILED = "failed"

PAYMENT_STATUSES = [PAYMENT_PENDING, PAYMENT_COMPLETED, PAYMENT_FAILED]

BOOK_PENDING = "pending"
BOOK_APPROVED = "approved"
BOOK_REJECTED = "rejected"

# Admin may only move a book into these; "pending" is owned by the author gate
ADMIN_BOOK_STATUSES = [BOOK_APPROVED, BOOK_REJECTED]

ROLE_CUSTOMER = "customer"
ROLE_AUTHOR = "author"
ROLE_ADMIN = "admin"

SELF_SERVICE_ROLES = [ROLE_CUSTOMER, ROLE_AUTHOR]
