from bukkapay.models.user import User, Session
from bukkapay.models.account import Account, AccountStatus
from bukkapay.models.transfer import (
    TransferRecord,
    TransferStatus,
    TransferKind,
    EntryDirection,
    TransactionLimit,
)
from bukkapay.models.contact import Contact
from bukkapay.models.payment_request import PaymentRequest, PaymentRequestStatus
