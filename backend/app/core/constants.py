# backend/app/core/constants.py

"""
Constantes de negocio de Control de Gastos.

Aquí concentramos los "strings mágicos" que usamos en varios sitios:
- métodos de pago
- tipos de gasto
- franquicias de tarjetas
- monedas y frecuencias de los simuladores
"""

# ----------------------------
# Métodos de pago
# ----------------------------
PAYMENT_CASH = "cash"
PAYMENT_CREDIT = "credit"
PAYMENT_DEBIT = "debit"

ALL_PAYMENT_METHODS = (PAYMENT_CASH, PAYMENT_CREDIT, PAYMENT_DEBIT)

# ----------------------------
# Tipos de gasto (categorías)
# ----------------------------
TIPO_GASTO_FIJO = "F"
TIPO_GASTO_VARIABLE = "V"
TIPO_GASTO_SEMI_FIJO = "SF"
TIPO_GASTO_EVENTUAL = "E"

ALL_TIPOS_GASTO = (
    TIPO_GASTO_FIJO,
    TIPO_GASTO_VARIABLE,
    TIPO_GASTO_SEMI_FIJO,
    TIPO_GASTO_EVENTUAL,
)

# ----------------------------
# Tarjetas de crédito
# ----------------------------
ALL_FRANCHISES = ("visa", "mastercard", "american_express", "discover", "other")

# ----------------------------
# Simuladores
# ----------------------------
ALL_CURRENCIES = ("USD", "COP", "EUR", "MXN", "ARS", "GBP")
MAX_LOAN_TERM_MONTHS = 480
MAX_INVEST_TERM_MONTHS = 600

COMPOUNDING_DAILY = "daily"
COMPOUNDING_MONTHLY = "monthly"
PERIODS_PER_YEAR = {COMPOUNDING_DAILY: 365, COMPOUNDING_MONTHLY: 12}

ALL_RATE_TYPES = ("EA", "EM", "ED", "NM", "NA")

BASE_RATE_LABEL = "Tasa Base"
