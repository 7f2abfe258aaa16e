from dataclasses import dataclass

from app.models.enums.product_status import ProductStatus
from app.core.exceptions import InvalidState
from app.constants.error_codes import ErrorCode


@dataclass(frozen=True)
class ApprovalState:
    """
    The (status, is_approved) pair of a product.

    Lifecycle and approval are independent: a product can be archived while
    staying approved, but an approved draft cannot exist.
    """

    status: ProductStatus
    is_approved: bool

    def __post_init__(self):
        if self.is_approved and self.status == ProductStatus.draft:
            raise InvalidState(
                "An approved product cannot be a draft",
                ErrorCode.PRODUCT_INVALID_STATE,
                {"status": self.status.value, "is_approved": self.is_approved},
            )

    @property
    def is_visible(self) -> bool:
        return self.status == ProductStatus.published and self.is_approved

    @classmethod
    def of(cls, product) -> "ApprovalState":
        if product.is_approved is None:
            raise InvalidState(
                "Product still uses the legacy status model; run the product status migration",
                ErrorCode.PRODUCT_INVALID_STATE,
                {"product_id": product.id, "status": product.status},
            )
        try:
            status = ProductStatus(product.status)
        except ValueError:
            raise InvalidState(
                f"Unknown product status '{product.status}'",
                ErrorCode.PRODUCT_INVALID_STATE,
                {"product_id": product.id},
            )
        return cls(status=status, is_approved=bool(product.is_approved))


DRAFT = ApprovalState(ProductStatus.draft, False)
PENDING_APPROVAL = ApprovalState(ProductStatus.pending_approval, False)
PUBLISHED = ApprovalState(ProductStatus.published, True)
