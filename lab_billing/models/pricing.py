"""
Pricing reference tables.

Labs maintain their own price list (LabPricing). The platform
maintains template rules (PricingRule) used when a lab has not
priced a restoration type, plus the urgency surcharge rule.
Both are configured elsewhere; invoice generation only reads them.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    String, Integer, Boolean, DateTime, Numeric,
    Enum as SAEnum, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from lab_billing.models.base import Base
from lab_billing.models.enums import PricingRuleType, enum_values


class LabPricing(Base):
    __tablename__ = "lab_pricing"
    __table_args__ = (
        UniqueConstraint("lab_id", "restoration_type", name="uq_lab_pricing_type"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    lab_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    restoration_type: Mapped[str] = mapped_column(String(50), nullable=False)
    fixed_price: Mapped[Decimal | None] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    # True when fixed_price already covers rush work
    includes_rush: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    rush_surcharge_percent: Mapped[Decimal | None] = mapped_column(
        Numeric(5, 2), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<LabPricing lab={self.lab_id} {self.restoration_type} {self.fixed_price}>"


class PricingRule(Base):
    """
    A platform template rule.

    BASE_PRICE rules are keyed by restoration type. The
    URGENCY_SURCHARGE rule applies to any restoration type when
    restoration_type is NULL. Lower priority wins.
    """

    __tablename__ = "pricing_rules"

    id: Mapped[int] = mapped_column(primary_key=True)
    rule_name: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False
    )
    rule_type: Mapped[PricingRuleType] = mapped_column(
        SAEnum(
            PricingRuleType,
            name="pricing_rule_type_enum",
            values_callable=enum_values,
        ),
        nullable=False,
    )
    restoration_type: Mapped[str | None] = mapped_column(
        String(50), nullable=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    is_percentage: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f"<PricingRule {self.rule_name} ({self.rule_type.value})>"
