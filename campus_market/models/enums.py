from enum import Enum


class ListingCategory(str, Enum):
    DORM_AND_DECOR = "Dorm and Decor"
    FUN_AND_CRAFT = "Fun and Craft"
    TRANSPORTATION = "Transportation"
    TECH_AND_GADGETS = "Tech and Gadgets"
    BOOKS = "Books"
    CLOTHING_AND_ACCESSORIES = "Clothing and Accessories"
    GIVEAWAYS = "Giveaways"
    OTHER = "Other"


class ListingCondition(str, Enum):
    NEW = "New"
    LIKE_NEW = "Like New"
    USED = "Used"
    REFURBISHED = "Refurbished"
    FOR_PARTS = "For Parts"


CONDITION_RANK = {
    ListingCondition.NEW: 5,
    ListingCondition.LIKE_NEW: 4,
    ListingCondition.USED: 3,
    ListingCondition.REFURBISHED: 2,
    ListingCondition.FOR_PARTS: 1,
}


class ListingSort(str, Enum):
    NEWEST = "newest"
    PRICE_LOW = "price_low"
    PRICE_HIGH = "price_high"
    CONDITION = "condition"


class ReportStatus(str, Enum):
    PENDING = "pending"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


class NotificationType(str, Enum):
    MESSAGE = "message"
    REPORT = "report"
    SYSTEM = "system"


class OtpType(str, Enum):
    SIGNUP = "signup"
    EMAIL = "email"
    RECOVERY = "recovery"
    INVITE = "invite"
    MAGICLINK = "magiclink"
    EMAIL_CHANGE = "email_change"
