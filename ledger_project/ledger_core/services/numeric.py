"""
Numeric integrity helpers: compensated summation, money rounding,
Benford first-digit analysis, error classification and proportional
reconciliation.

Everything in here is pure (no ORM access) so the correction pass in
services.integrity can be tested piecewise.
"""
import math
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Optional

ZERO = Decimal("0.00")
DECIMAL_ZERO = Decimal("0")
Q2 = Decimal("0.01")
Q3 = Decimal("0.001")
Q6 = Decimal("0.000001")

# Kahan is exact enough for short line lists, Neumaier above this size
KAHAN_MAX_VALUES = 50
# enough digits for any sum of Decimal(18, 2) amounts
DECIMAL_PRECISION = 40

ROUNDING_TOLERANCE = 0.01
MATERIALITY_RATE = 0.01
MATERIALITY_CAP = 100.0
CRITICAL_MULTIPLIER = 10

# P(d) = log10(1 + 1/d), standard three-decimal table
BENFORD_EXPECTED = {
    1: 0.301,
    2: 0.176,
    3: 0.125,
    4: 0.097,
    5: 0.079,
    6: 0.067,
    7: 0.058,
    8: 0.051,
    9: 0.046,
}
# chi-square, 8 degrees of freedom, alpha = 0.05
BENFORD_CRITICAL_VALUE = 15.507
# Benford only says something with enough samples
BENFORD_MIN_SAMPLES = 10


def _to_float(value) -> float:
    """None, NaN, infinities and junk all count as 0."""
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(number):
        return 0.0
    return number


def _terms(values):
    """
    Decimal amounts (model fields) are summed exactly as Decimals; any
    other input goes through float. Returns (terms, zero).
    """
    values = list(values)
    if any(isinstance(value, Decimal) for value in values) and all(
        value is None or isinstance(value, Decimal) for value in values
    ):
        return [
            value if value is not None and value.is_finite() else DECIMAL_ZERO
            for value in values
        ], DECIMAL_ZERO
    return [_to_float(value) for value in values], 0.0


# ---------- Summation ----------
def kahan_sum(values):
    terms, total = _terms(values)
    compensation = total
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        for number in terms:
            y = number - compensation
            t = total + y
            compensation = (t - total) - y
            total = t
    return total


def neumaier_sum(values):
    """Kahan variant that also compensates when the term outweighs the sum."""
    terms, total = _terms(values)
    compensation = total
    with localcontext() as ctx:
        ctx.prec = DECIMAL_PRECISION
        for number in terms:
            t = total + number
            if abs(total) >= abs(number):
                compensation += (total - t) + number
            else:
                compensation += (number - t) + total
            total = t
        return total + compensation


def compensated_sum(values, kahan_max_values: int = KAHAN_MAX_VALUES):
    values = list(values)
    if len(values) <= kahan_max_values:
        return kahan_sum(values)
    return neumaier_sum(values)


def round_money(value) -> Decimal:
    """
    Two-stage half-up rounding: 3 decimals first, then 2.
    Always returns a Decimal, never NaN.
    """
    if isinstance(value, Decimal):
        amount = value if value.is_finite() else ZERO
    elif isinstance(value, int) and not isinstance(value, bool):
        amount = Decimal(value)
    else:
        try:
            amount = Decimal(repr(_to_float(value)))
        except InvalidOperation:
            amount = ZERO
    return amount.quantize(Q3, rounding=ROUND_HALF_UP).quantize(
        Q2, rounding=ROUND_HALF_UP
    )


def sum_amounts(values, kahan_max_values: int = KAHAN_MAX_VALUES) -> Decimal:
    return round_money(compensated_sum(values, kahan_max_values))


# ---------- Benford ----------
@dataclass
class BenfordResult:
    chi_square: float
    is_anomalous: bool
    suspicious_digits: list = field(default_factory=list)
    confidence: float = 1.0


def first_digit(value) -> Optional[int]:
    number = abs(_to_float(value))
    if number == 0:
        return None
    # scientific notation always starts with the leading significant digit
    return int(f"{number:e}"[0])


def benford_analysis(amounts) -> BenfordResult:
    observed = {digit: 0 for digit in BENFORD_EXPECTED}
    total = 0
    for amount in amounts:
        digit = first_digit(amount)
        if digit is None:
            continue
        observed[digit] += 1
        total += 1

    if total == 0:
        return BenfordResult(chi_square=0.0, is_anomalous=False, confidence=1.0)

    chi_square = 0.0
    suspicious = []
    for digit, probability in BENFORD_EXPECTED.items():
        expected = probability * total
        deviation = observed[digit] - expected
        chi_square += (deviation * deviation) / expected
        # >20% off on a digit with a meaningful expected count
        if expected > 5 and abs(deviation) > expected * 0.2:
            suspicious.append(digit)

    return BenfordResult(
        chi_square=chi_square,
        is_anomalous=chi_square > BENFORD_CRITICAL_VALUE,
        suspicious_digits=suspicious,
        confidence=min(1.0, 1.0 - chi_square / 50),
    )


# ---------- Transpositions ----------
@dataclass
class TranspositionResult:
    is_transposition: bool
    transposed_digits: Optional[tuple] = None
    positions: Optional[tuple] = None


def _integer_digits(value) -> str:
    amount = Decimal(str(_to_float(value))).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return str(abs(int(amount)))


def detect_exact_transposition(value1, value2) -> TranspositionResult:
    """1234 vs 1324 → digits (2, 3) swapped at positions (1, 2)."""
    first = _integer_digits(value1)
    second = _integer_digits(value2)
    if len(first) != len(second) or len(first) < 2:
        return TranspositionResult(is_transposition=False)

    differences = [
        (pos, a, b) for pos, (a, b) in enumerate(zip(first, second)) if a != b
    ]
    if len(differences) == 2:
        (pos1, a1, b1), (pos2, a2, b2) = differences
        if a1 == b2 and b1 == a2:
            return TranspositionResult(
                is_transposition=True,
                transposed_digits=(int(a1), int(b1)),
                positions=(pos1, pos2),
            )
    return TranspositionResult(is_transposition=False)


# ---------- Error classification ----------
@dataclass
class Classification:
    error_type: str  # rounding | transposition | systematic | slide | omission | unknown
    confidence: float
    suggestion: str
    benford: Optional[BenfordResult] = None
    z_score: Optional[float] = None


def _is_multiple(value: float, base: int) -> bool:
    return abs(value % base) < 0.001


def classify_difference(difference, amounts=(), historical_mean=None) -> Classification:
    """
    Classify `difference` (Σdebit − Σcredit). First match wins:
    rounding, transposition, systematic (Benford), slide, omission,
    systematic (outlier vs history), unknown.
    """
    abs_diff = float(round_money(abs(_to_float(difference))))

    if abs_diff <= ROUNDING_TOLERANCE:
        return Classification(
            "rounding", 0.95, "Rounding adjustment within standard tolerance"
        )

    amounts = [a for a in amounts if _to_float(a) != 0]
    benford = None
    if len(amounts) >= BENFORD_MIN_SAMPLES:
        benford = benford_analysis(amounts)

    z_score = None
    mean = _to_float(historical_mean)
    if mean > 0:
        # assume a 10% standard deviation around the historical mean
        z_score = abs_diff / (mean * 0.1)

    if _is_multiple(abs_diff, 9):
        return Classification(
            "transposition", 0.75,
            "Likely digit transposition (difference divisible by 9)",
            benford, z_score,
        )
    if benford is not None and benford.is_anomalous:
        return Classification(
            "systematic", 0.65,
            "First-digit distribution deviates from Benford's law",
            benford, z_score,
        )
    if _is_multiple(abs_diff, 10) or _is_multiple(abs_diff, 100):
        return Classification(
            "slide", 0.7,
            "Possible misplaced decimal point (multiple of 10)",
            benford, z_score,
        )
    if _is_multiple(abs_diff, 2) and abs_diff > 1:
        return Classification(
            "omission", 0.5,
            "Possible missing line (even difference)",
            benford, z_score,
        )
    if z_score is not None and z_score > 3:
        return Classification(
            "systematic", 0.6,
            f"Difference far above history (z-score {z_score:.2f})",
            benford, z_score,
        )
    return Classification(
        "unknown", 0.3, "Manual review recommended", benford, z_score
    )


# ---------- Reconciliation ----------
@dataclass
class LineAdjustment:
    id: object
    adjustment: Decimal
    new_amount: Decimal


def _quantize(value, exp) -> Decimal:
    return Decimal(repr(_to_float(value))).quantize(exp, rounding=ROUND_HALF_UP)


def statistical_data_reconciliation(lines, target_balance) -> list:
    """
    Spread `target_balance − Σamount` over `lines` ({"id", "amount",
    optional "weight"}) proportionally to |amount| or the given weight.
    Adjustments are kept at 6 decimals and new amounts at 2; whatever the
    rounding leaves over goes to the largest line.
    """
    lines = list(lines)
    if not lines:
        return []

    amounts = [_to_float(line.get("amount")) for line in lines]
    difference = _to_float(target_balance) - neumaier_sum(amounts)

    if abs(difference) < ROUNDING_TOLERANCE:
        return [
            LineAdjustment(line.get("id"), Decimal("0"), _quantize(amount, Q2))
            for line, amount in zip(lines, amounts)
        ]

    total_absolute = neumaier_sum(abs(a) for a in amounts)
    adjustments = []
    for line, amount in zip(lines, amounts):
        if line.get("weight") is not None:
            weight = _to_float(line["weight"])
        elif total_absolute > 0:
            weight = abs(amount) / total_absolute
        else:
            weight = 1 / len(lines)
        adjustment = _quantize(difference * weight, Q6)
        adjustments.append(
            LineAdjustment(
                line.get("id"),
                adjustment,
                (Decimal(repr(amount)) + adjustment).quantize(Q2, rounding=ROUND_HALF_UP),
            )
        )

    residual = _quantize(difference, Q6) - sum(a.adjustment for a in adjustments)
    if abs(residual) > Decimal("0.001"):
        largest = max(range(len(amounts)), key=lambda idx: abs(amounts[idx]))
        target = adjustments[largest]
        target.adjustment += residual
        target.new_amount = (Decimal(repr(amounts[largest])) + target.adjustment).quantize(
            Q2, rounding=ROUND_HALF_UP
        )
    return adjustments


# ---------- Tolerances ----------
@dataclass
class ToleranceThresholds:
    rounding: float
    material: float
    critical: float


def tolerance_thresholds(max_total, cap: float = MATERIALITY_CAP) -> ToleranceThresholds:
    """material = min(1% of the largest total, cap); critical = 10 × material."""
    material = min(abs(_to_float(max_total)) * MATERIALITY_RATE, cap)
    return ToleranceThresholds(
        rounding=ROUNDING_TOLERANCE,
        material=material,
        critical=material * CRITICAL_MULTIPLIER,
    )
