# ============================================================
# Control de Gastos - Modelos SQLAlchemy
# - Claves UUID (texto) salvo agrupadores/estudios (enteros autoincrementales)
# - Dinero en NUMERIC(15,2)
# - ON DELETE CASCADE / SET NULL en BD; las relaciones ORM usan
#   passive_deletes para delegar el borrado en cascada a la BD
# - categories.fund_id se conserva como campo "legacy": la fuente preferida
#   de fondos de una categoría es category_fund_relationships
# ============================================================

from sqlalchemy import (
    JSON, Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey,
    Integer, Numeric, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from backend.app.db.base import Base
from backend.app.db.custom_types import MONEY_COLUMN
from backend.app.utils.id_utils import new_id


def _pk():
    return Column(String(36), primary_key=True, default=new_id)


def _created_at():
    return Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


def _updated_at():
    return Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


# =============================================
# 1. PERIODOS, FONDOS, CATEGORÍAS
# =============================================

class Period(Base):
    __tablename__ = "periods"
    __table_args__ = (
        CheckConstraint("month >= 0 AND month <= 11", name="ck_periods_month"),
        {"extend_existing": True},
    )

    id          = _pk()
    name        = Column(String(255), nullable=False)
    month       = Column(Integer, nullable=False)
    year        = Column(Integer, nullable=False)
    is_open     = Column(Boolean, nullable=False, default=False)
    created_at  = _created_at()

    budgets  = relationship("Budget", back_populates="period", cascade="all, delete-orphan", passive_deletes=True)
    expenses = relationship("Expense", back_populates="period", cascade="all, delete-orphan", passive_deletes=True)


class Fund(Base):
    __tablename__ = "funds"
    __table_args__ = {"extend_existing": True}

    id               = _pk()
    name             = Column(String(255), nullable=False, unique=True)
    description      = Column(String(500), nullable=True)
    initial_balance  = Column(MONEY_COLUMN, nullable=False, default=0)
    current_balance  = Column(MONEY_COLUMN, nullable=False, default=0)
    start_date       = Column(Date, nullable=False)
    created_at       = _created_at()
    updated_at       = _updated_at()


class Category(Base):
    __tablename__ = "categories"
    __table_args__ = (
        CheckConstraint("tipo_gasto IN ('F', 'V', 'SF', 'E')", name="ck_categories_tipo_gasto"),
        CheckConstraint("default_day IS NULL OR (default_day >= 1 AND default_day <= 31)", name="ck_categories_default_day"),
        CheckConstraint("recurring_date IS NULL OR (recurring_date >= 1 AND recurring_date <= 31)", name="ck_categories_recurring_date"),
        {"extend_existing": True},
    )

    id              = _pk()
    name            = Column(String(255), nullable=False)
    # legacy: fondo único anterior a category_fund_relationships
    fund_id         = Column(String(36), ForeignKey("funds.id", ondelete="SET NULL"), nullable=True)
    tipo_gasto      = Column(String(2), nullable=False, default="F")
    default_day     = Column(Integer, nullable=True)
    recurring_date  = Column(Integer, nullable=True)

    fund        = relationship("Fund", foreign_keys=[fund_id])
    fund_links  = relationship(
        "CategoryFundRelationship",
        back_populates="category",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class CategoryFundRelationship(Base):
    __tablename__ = "category_fund_relationships"
    __table_args__ = (
        UniqueConstraint("category_id", "fund_id", name="uq_category_fund"),
        {"extend_existing": True},
    )

    id           = _pk()
    category_id  = Column(String(36), ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True)
    fund_id      = Column(String(36), ForeignKey("funds.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at   = _created_at()

    category = relationship("Category", back_populates="fund_links")
    fund     = relationship("Fund")


# =============================================
# 2. MOVIMIENTOS
# =============================================

class CreditCard(Base):
    __tablename__ = "credit_cards"
    __table_args__ = (
        UniqueConstraint("bank_name", "franchise", "last_four_digits", name="uq_credit_card"),
        {"extend_existing": True},
    )

    id                = _pk()
    bank_name         = Column(String(255), nullable=False)
    franchise         = Column(String(32), nullable=False)
    last_four_digits  = Column(String(4), nullable=False)
    is_active         = Column(Boolean, nullable=False, default=True)
    created_at        = _created_at()
    updated_at        = _updated_at()


class Income(Base):
    __tablename__ = "incomes"
    __table_args__ = {"extend_existing": True}

    id           = _pk()
    period_id    = Column(String(36), ForeignKey("periods.id", ondelete="SET NULL"), nullable=True, index=True)
    date         = Column(Date, nullable=False)
    description  = Column(String(500), nullable=False)
    amount       = Column(MONEY_COLUMN, nullable=False)
    event        = Column(String(255), nullable=True)
    fund_id      = Column(String(36), ForeignKey("funds.id"), nullable=True, index=True)
    created_at   = _created_at()

    period = relationship("Period")
    fund   = relationship("Fund")


class Expense(Base):
    __tablename__ = "expenses"
    __table_args__ = (
        CheckConstraint("payment_method IN ('cash', 'credit', 'debit')", name="ck_expenses_payment_method"),
        {"extend_existing": True},
    )

    id                   = _pk()
    category_id          = Column(String(36), ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True)
    period_id            = Column(String(36), ForeignKey("periods.id", ondelete="CASCADE"), nullable=False, index=True)
    date                 = Column(Date, nullable=False)
    event                = Column(String(255), nullable=True)
    payment_method       = Column(String(16), nullable=False)
    description          = Column(String(500), nullable=True)
    amount               = Column(MONEY_COLUMN, nullable=False)
    source_fund_id       = Column(String(36), ForeignKey("funds.id"), nullable=True, index=True)
    destination_fund_id  = Column(String(36), ForeignKey("funds.id", ondelete="SET NULL"), nullable=True, index=True)
    credit_card_id       = Column(String(36), ForeignKey("credit_cards.id", ondelete="SET NULL"), nullable=True)
    pending              = Column(Boolean, nullable=False, default=False)
    created_at           = _created_at()

    category          = relationship("Category")
    period            = relationship("Period", back_populates="expenses")
    source_fund       = relationship("Fund", foreign_keys=[source_fund_id])
    destination_fund  = relationship("Fund", foreign_keys=[destination_fund_id])
    credit_card       = relationship("CreditCard")


class Budget(Base):
    __tablename__ = "budgets"
    __table_args__ = (
        UniqueConstraint("category_id", "period_id", "payment_method", name="uq_budget_category_period_method"),
        {"extend_existing": True},
    )

    id               = _pk()
    category_id      = Column(String(36), ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True)
    period_id        = Column(String(36), ForeignKey("periods.id", ondelete="CASCADE"), nullable=False, index=True)
    expected_amount  = Column(MONEY_COLUMN, nullable=False, default=0)
    payment_method   = Column(String(16), nullable=False, default="cash")
    expected_date    = Column(Date, nullable=True)

    category = relationship("Category")
    period   = relationship("Period", back_populates="budgets")


class AppSettings(Base):
    __tablename__ = "settings"
    __table_args__ = {"extend_existing": True}

    id               = Column(Integer, primary_key=True, default=1)
    default_fund_id  = Column(String(36), ForeignKey("funds.id", ondelete="SET NULL"), nullable=True)
    updated_at       = _updated_at()

    default_fund = relationship("Fund")


# =============================================
# 3. AGRUPADORES Y ESTUDIOS
# =============================================

class Grouper(Base):
    __tablename__ = "groupers"
    __table_args__ = {"extend_existing": True}

    id          = Column(Integer, primary_key=True, autoincrement=True)
    name        = Column(String(255), nullable=False)
    created_at  = _created_at()

    category_links = relationship(
        "GrouperCategory", back_populates="grouper", cascade="all, delete-orphan", passive_deletes=True
    )


class GrouperCategory(Base):
    __tablename__ = "grouper_categories"
    __table_args__ = (
        UniqueConstraint("grouper_id", "category_id", name="uq_grouper_category"),
        {"extend_existing": True},
    )

    id           = Column(Integer, primary_key=True, autoincrement=True)
    grouper_id   = Column(Integer, ForeignKey("groupers.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id  = Column(String(36), ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True)

    grouper  = relationship("Grouper", back_populates="category_links")
    category = relationship("Category")


class Estudio(Base):
    __tablename__ = "estudios"
    __table_args__ = {"extend_existing": True}

    id           = Column(Integer, primary_key=True, autoincrement=True)
    name         = Column(String(255), nullable=False)
    description  = Column(Text, nullable=True)
    created_at   = _created_at()
    updated_at   = _updated_at()

    grouper_links = relationship(
        "EstudioGrouper", back_populates="estudio", cascade="all, delete-orphan", passive_deletes=True
    )


class EstudioGrouper(Base):
    __tablename__ = "estudio_groupers"
    __table_args__ = (
        UniqueConstraint("estudio_id", "grouper_id", name="uq_estudio_grouper"),
        CheckConstraint("percentage IS NULL OR (percentage >= 0 AND percentage <= 100)", name="ck_estudio_groupers_percentage"),
        {"extend_existing": True},
    )

    id               = Column(Integer, primary_key=True, autoincrement=True)
    estudio_id       = Column(Integer, ForeignKey("estudios.id", ondelete="CASCADE"), nullable=False, index=True)
    grouper_id       = Column(Integer, ForeignKey("groupers.id", ondelete="CASCADE"), nullable=False, index=True)
    percentage       = Column(Numeric(5, 2), nullable=True)
    # None = todos los métodos de pago
    payment_methods  = Column(JSON, nullable=True)
    created_at       = _created_at()

    estudio = relationship("Estudio", back_populates="grouper_links")
    grouper = relationship("Grouper")


# =============================================
# 4. SIMULADORES FINANCIEROS
# =============================================

class LoanScenario(Base):
    __tablename__ = "loan_scenarios"
    __table_args__ = (
        CheckConstraint("term_months > 0 AND term_months <= 480", name="ck_loan_term"),
        {"extend_existing": True},
    )

    id             = _pk()
    name           = Column(String(255), nullable=False)
    principal      = Column(MONEY_COLUMN, nullable=False)
    interest_rate  = Column(Numeric(7, 4), nullable=False)  # EA en %
    term_months    = Column(Integer, nullable=False)
    start_date     = Column(Date, nullable=False)
    currency       = Column(String(3), nullable=False, default="USD")
    created_at     = _created_at()
    updated_at     = _updated_at()

    extra_payments = relationship(
        "LoanExtraPayment",
        back_populates="loan_scenario",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="LoanExtraPayment.payment_number",
    )


class LoanExtraPayment(Base):
    __tablename__ = "loan_extra_payments"
    __table_args__ = {"extend_existing": True}

    id                = _pk()
    loan_scenario_id  = Column(String(36), ForeignKey("loan_scenarios.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_number    = Column(Integer, nullable=False)
    amount            = Column(MONEY_COLUMN, nullable=False)
    description       = Column(String(500), nullable=True)
    created_at        = _created_at()

    loan_scenario = relationship("LoanScenario", back_populates="extra_payments")


class InvestmentScenario(Base):
    __tablename__ = "investment_scenarios"
    __table_args__ = (
        CheckConstraint("compounding_frequency IN ('daily', 'monthly')", name="ck_invest_compounding"),
        {"extend_existing": True},
    )

    id                     = _pk()
    name                   = Column(String(255), nullable=False)
    initial_amount         = Column(MONEY_COLUMN, nullable=False, default=0)
    monthly_contribution   = Column(MONEY_COLUMN, nullable=False, default=0)
    term_months            = Column(Integer, nullable=False)
    annual_rate            = Column(Numeric(7, 4), nullable=False)  # EA en %
    compounding_frequency  = Column(String(16), nullable=False, default="monthly")
    currency               = Column(String(3), nullable=False, default="COP")
    notes                  = Column(Text, nullable=True)
    created_at             = _created_at()
    updated_at             = _updated_at()

    rate_comparisons = relationship(
        "InvestmentRateComparison",
        back_populates="scenario",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="InvestmentRateComparison.rate",
    )


class InvestmentRateComparison(Base):
    __tablename__ = "investment_rate_comparisons"
    __table_args__ = {"extend_existing": True}

    id                      = _pk()
    investment_scenario_id  = Column(String(36), ForeignKey("investment_scenarios.id", ondelete="CASCADE"), nullable=False, index=True)
    rate                    = Column(Numeric(7, 4), nullable=False)
    label                   = Column(String(255), nullable=True)
    created_at              = _created_at()

    scenario = relationship("InvestmentScenario", back_populates="rate_comparisons")


class InterestRateScenario(Base):
    __tablename__ = "interest_rate_scenarios"
    __table_args__ = (
        CheckConstraint("input_rate_type IN ('EA', 'EM', 'ED', 'NM', 'NA')", name="ck_rate_type"),
        {"extend_existing": True},
    )

    id               = _pk()
    name             = Column(String(255), nullable=False)
    input_rate       = Column(Numeric(14, 8), nullable=False)  # decimal: 0.12 = 12%
    input_rate_type  = Column(String(2), nullable=False)
    notes            = Column(Text, nullable=True)
    created_at       = _created_at()
    updated_at       = _updated_at()


# =============================================
# 5. SIMULACIONES Y PLANTILLAS DE SUBGRUPOS
# =============================================

class Simulation(Base):
    __tablename__ = "simulations"
    __table_args__ = {"extend_existing": True}

    id           = _pk()
    name         = Column(String(255), nullable=False)
    description  = Column(Text, nullable=True)
    created_at   = _created_at()
    updated_at   = _updated_at()

    incomes   = relationship("SimulationIncome", back_populates="simulation", cascade="all, delete-orphan", passive_deletes=True)
    budgets   = relationship("SimulationBudget", back_populates="simulation", cascade="all, delete-orphan", passive_deletes=True)
    subgroups = relationship(
        "SimulationSubgroup",
        back_populates="simulation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SimulationSubgroup.display_order",
    )


class SimulationIncome(Base):
    __tablename__ = "simulation_incomes"
    __table_args__ = {"extend_existing": True}

    id             = _pk()
    simulation_id  = Column(String(36), ForeignKey("simulations.id", ondelete="CASCADE"), nullable=False, index=True)
    description    = Column(String(500), nullable=False)
    amount         = Column(MONEY_COLUMN, nullable=False)
    created_at     = _created_at()

    simulation = relationship("Simulation", back_populates="incomes")


class SimulationBudget(Base):
    __tablename__ = "simulation_budgets"
    __table_args__ = (
        UniqueConstraint("simulation_id", "category_id", name="uq_simulation_budget"),
        {"extend_existing": True},
    )

    id                      = _pk()
    simulation_id           = Column(String(36), ForeignKey("simulations.id", ondelete="CASCADE"), nullable=False, index=True)
    category_id             = Column(String(36), ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, index=True)
    efectivo_amount         = Column(MONEY_COLUMN, nullable=False, default=0)
    credito_amount          = Column(MONEY_COLUMN, nullable=False, default=0)
    ahorro_efectivo_amount  = Column(MONEY_COLUMN, nullable=False, default=0)
    ahorro_credito_amount   = Column(MONEY_COLUMN, nullable=False, default=0)
    expected_savings        = Column(MONEY_COLUMN, nullable=False, default=0)

    simulation = relationship("Simulation", back_populates="budgets")
    category   = relationship("Category")


class SimulationSubgroup(Base):
    __tablename__ = "simulation_subgroups"
    __table_args__ = {"extend_existing": True}

    id                    = _pk()
    simulation_id         = Column(String(36), ForeignKey("simulations.id", ondelete="CASCADE"), nullable=False, index=True)
    name                  = Column(String(255), nullable=False)
    display_order         = Column(Integer, nullable=False, default=0)
    category_ids          = Column(JSON, nullable=False, default=list)
    template_subgroup_id  = Column(String(36), ForeignKey("template_subgroups.id", ondelete="SET NULL"), nullable=True)
    created_at            = _created_at()

    simulation         = relationship("Simulation", back_populates="subgroups")
    template_subgroup  = relationship("TemplateSubgroup")


class SubgroupTemplate(Base):
    __tablename__ = "subgroup_templates"
    __table_args__ = {"extend_existing": True}

    id           = _pk()
    name         = Column(String(255), nullable=False, unique=True)
    description  = Column(Text, nullable=True)
    created_at   = _created_at()
    updated_at   = _updated_at()

    subgroups = relationship(
        "TemplateSubgroup",
        back_populates="template",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="TemplateSubgroup.display_order",
    )


class TemplateSubgroup(Base):
    __tablename__ = "template_subgroups"
    __table_args__ = {"extend_existing": True}

    id             = _pk()
    template_id    = Column(String(36), ForeignKey("subgroup_templates.id", ondelete="CASCADE"), nullable=False, index=True)
    name           = Column(String(255), nullable=False)
    display_order  = Column(Integer, nullable=False, default=0)
    category_ids   = Column(JSON, nullable=False, default=list)

    template = relationship("SubgroupTemplate", back_populates="subgroups")
