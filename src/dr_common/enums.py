"""Global enums, must match DB CHECK constraints exactly."""

from enum import Enum


class BalanceStatus(str, Enum):
    NORMAL = "NORMAL"
    FROZEN = "FROZEN"
    CANCELLED = "CANCELLED"


class BillType(str, Enum):
    RECHARGE = "RECHARGE"
    CONSUME = "CONSUME"
    REFUND = "REFUND"


class BillingType(str, Enum):
    INSTANT = "INSTANT"
    DAILY = "DAILY"


class BalanceAccount(str, Enum):
    """Which balance bucket a billing record's before/after snapshot refers to."""
    BASE = "BASE"          # dr_balance
    RESERVED = "RESERVED"  # pre_deducted_balance


class BillStatus(str, Enum):
    SUCCESS = "SUCCESS"


class BusinessType(str, Enum):
    """Known business tags. billing_records.business_type stays an open string."""
    RECHARGE = "RECHARGE"
    MANUAL_ADJUST = "MANUAL_ADJUST"
    INSTANCE_PRE_DEDUCT = "INSTANCE_PRE_DEDUCT"
    INSTANCE_MARKETING = "INSTANCE_MARKETING"
    INSTANCE_PROSPECTING = "INSTANCE_PROSPECTING"
    INSTANCE_PRORATION = "INSTANCE_PRORATION"
    SMS = "SMS"
    TOKEN = "TOKEN"
    AGENT_LEVEL1_COMMISSION = "AGENT_LEVEL1_COMMISSION"
    AGENT_LEVEL2_COMMISSION = "AGENT_LEVEL2_COMMISSION"
    AGENT_LEVEL3_COMMISSION = "AGENT_LEVEL3_COMMISSION"


class PriceStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class ResourceStatus(str, Enum):
    ACTIVE = "ACTIVE"
    RELEASED = "RELEASED"


class CommissionAccountStatus(str, Enum):
    NORMAL = "NORMAL"
    FROZEN = "FROZEN"


class CommissionRecordType(str, Enum):
    RECHARGE_COMMISSION = "RECHARGE_COMMISSION"
    SETTLEMENT_FREEZE = "SETTLEMENT_FREEZE"
    SETTLEMENT_PAYOUT = "SETTLEMENT_PAYOUT"
    SETTLEMENT_ROLLBACK = "SETTLEMENT_ROLLBACK"
    MANUAL_ADJUST = "MANUAL_ADJUST"


class SettlementStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class UserType(str, Enum):
    ADMIN = "ADMIN"
    AGENT = "AGENT"
    BUYER_MAIN = "BUYER_MAIN"
    BUYER_SUB = "BUYER_SUB"
