from ..core.utils import round_half_up

# Total Acquisition-Renovation Ratio
TARR = 0.87

def compute_allowance(arv: float, chv: float) -> int:
    """Renovation allowance = max(0, round(ARV x TARR - CHV))."""
    return max(0, round_half_up(arv * TARR - chv))

def allowance_formula(arv: int, chv: int, allowance: int) -> str:
    return f"(ARV × 87%) - CHV = (${arv:,} × 0.87) - ${chv:,} = ${allowance:,}"
