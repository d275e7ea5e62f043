"""Invoice line item: quantity, rate, net amount, VAT and gross amount."""

from __future__ import annotations

from relsolve.rule_class import rule, rules_with_tags
from relsolve.schema_class import Schema

TAG = "invoice_item"

########################################################################################################################
#                                                                                              NET AMOUNT = QTY * RATE
########################################################################################################################
@rule(name="Net amount from quantity and rate", output="net_amount", tags=TAG)
def net_from_qty_rate(qty: float, rate: float) -> float:
    return qty * rate

@rule(name="Quantity from net amount and rate", output="qty", tags=TAG)
def qty_from_net_rate(net_amount: float, rate: float) -> float:
    return net_amount / rate

@rule(name="Rate from net amount and quantity", output="rate", tags=TAG)
def rate_from_net_qty(net_amount: float, qty: float) -> float:
    return net_amount / qty

########################################################################################################################
#                                                                                     VAT = NET AMOUNT * VAT_PCT / 100
########################################################################################################################
@rule(name="VAT from net amount and VAT percentage", output="vat", tags=TAG)
def vat_from_net_pct(net_amount: float, vat_pct: float) -> float:
    return net_amount * vat_pct / 100

@rule(name="Net amount from VAT and VAT percentage", output="net_amount", tags=TAG)
def net_from_vat_pct(vat: float, vat_pct: float) -> float:
    return vat * 100 / vat_pct

@rule(name="VAT percentage from VAT and net amount", output="vat_pct", tags=TAG)
def pct_from_vat_net(vat: float, net_amount: float) -> float:
    return vat * 100 / net_amount

########################################################################################################################
#                                                                                          GROSS AMOUNT = NET + VAT
########################################################################################################################
@rule(name="Gross amount from net amount and VAT", output="gross_amount", tags=TAG)
def gross_from_net_vat(net_amount: float, vat: float) -> float:
    return net_amount + vat

@rule(name="Net amount from gross amount and VAT", output="net_amount", tags=TAG)
def net_from_gross_vat(gross_amount: float, vat: float) -> float:
    return gross_amount - vat

@rule(name="VAT from gross and net amount", output="vat", tags=TAG)
def vat_from_gross_net(gross_amount: float, net_amount: float) -> float:
    return gross_amount - net_amount

########################################################################################################################
#                                                                      GROSS AMOUNT = NET AMOUNT * (1 + VAT_PCT / 100)
########################################################################################################################
@rule(name="Gross amount from net amount and VAT percentage", output="gross_amount", tags=TAG)
def gross_from_net_pct(net_amount: float, vat_pct: float) -> float:
    return net_amount * (1 + vat_pct / 100)

@rule(name="Net amount from gross amount and VAT percentage", output="net_amount", tags=TAG)
def net_from_gross_pct(gross_amount: float, vat_pct: float) -> float:
    return gross_amount / (1 + vat_pct / 100)

@rule(name="VAT percentage from gross and net amount", output="vat_pct", tags=TAG)
def pct_from_gross_net(gross_amount: float, net_amount: float) -> float:
    return (gross_amount / net_amount - 1) * 100


INVOICE_ITEM = Schema(
    name="invoice_item",
    fields=("qty", "rate", "net_amount", "vat_pct", "vat", "gross_amount"),
    defaults=(("vat_pct", 5.0), ("qty", 1.0)),
    rules=rules_with_tags(TAG),
    description="Invoice line item with VAT.",
)
