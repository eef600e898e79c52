"""
Carrier-specific renewal engines and their parameter and result models.

Engines are imported from their own modules, for example
``from renewal_projection.carriers.uhc_calculator import UHCRenewalCalculator``.
"""
