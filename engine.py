import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from numbers import Real

import pandas as pd
from dateutil.relativedelta import relativedelta

logger = logging.getLogger(__name__)

INCOME = 'income'
EXPENSE = 'expense'
TRANSFER = 'transfer'
SAVINGS = 'savings'
TRANSACTION_TYPES = (INCOME, EXPENSE, TRANSFER, SAVINGS)

# Days pandas can represent in a daily walk
FIRST_SUPPORTED_DATE = pd.Timestamp.min.ceil("D").date()
LAST_SUPPORTED_DATE = pd.Timestamp.max.floor("D").date()

# Named frequencies are plain fixed intervals, in days
FREQUENCY_DAYS = {
    'daily': 1,
    'weekly': 7,
    'bi-weekly': 14,
    'four-weekly': 28,
}

# --- 1. ERRORS ---

class ForecastError(ValueError):
    """Base class for rejected forecast inputs."""
    kind = 'ForecastError'

class InvalidRange(ForecastError):
    kind = 'InvalidRange'

class InvalidFrequency(ForecastError):
    kind = 'InvalidFrequency'

class InvalidAmount(ForecastError):
    kind = 'InvalidAmount'

class InvalidItem(ForecastError):
    kind = 'InvalidItem'

# --- 2. DATA MODEL ---

def to_date(value):
    """
    Normalizes a date, datetime or 'YYYY-MM-DD' string to a calendar date.
    Time of day is dropped.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip(), "%Y-%m-%d").date()
        except ValueError:
            raise InvalidItem(f"Invalid date '{value}', expected YYYY-MM-DD")
    raise InvalidItem(f"Invalid date: {value!r}")

@dataclass(frozen=True)
class RecurringItem:
    name: str
    amount: float
    frequency_days: int
    next_date: date
    is_savings_goal: bool = False

    @classmethod
    def from_dict(cls, data):
        """
        Builds an item from a JSON object or a database row.
        Accepts either 'frequency_days' or a named 'frequency'.
        """
        if not isinstance(data, Mapping):
            raise InvalidItem(f"Recurring item must be an object, got {data!r}")
        missing = [key for key in ('name', 'amount', 'next_date') if data.get(key) is None]
        if missing:
            raise InvalidItem(f"Recurring item is missing: {', '.join(missing)}")

        frequency_days = data.get('frequency_days')
        if frequency_days is None:
            frequency = data.get('frequency')
            if frequency is None:
                raise InvalidItem("Recurring item is missing: frequency_days")
            if str(frequency).lower() not in FREQUENCY_DAYS:
                raise InvalidFrequency(f"Unknown frequency '{frequency}'")
            frequency_days = FREQUENCY_DAYS[str(frequency).lower()]

        return cls(
            name=str(data['name']),
            amount=data['amount'],
            frequency_days=frequency_days,
            next_date=to_date(data['next_date']),
            is_savings_goal=bool(data.get('is_savings_goal', False)),
        )

    def to_dict(self):
        return {
            'name': self.name,
            'amount': self.amount,
            'frequency_days': self.frequency_days,
            'next_date': self.next_date.isoformat(),
            'is_savings_goal': self.is_savings_goal,
        }

@dataclass(frozen=True)
class Transaction:
    description: str
    amount: float
    type: str

@dataclass(frozen=True)
class DayEntry:
    date: date
    ending_balance: float
    net_change: float
    transactions: tuple = field(default_factory=tuple)
    # Reserved for reconciliation against recorded transactions
    is_actual: bool = False

# --- 3. VALIDATION ---

def check_amount(value, label):
    if isinstance(value, bool) or not isinstance(value, Real):
        raise InvalidAmount(f"{label} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise InvalidAmount(f"{label} must be finite, got {value!r}")

def validate_item(item):
    if isinstance(item.frequency_days, bool) or not isinstance(item.frequency_days, int):
        raise InvalidFrequency(
            f"'{item.name}': frequency_days must be an integer, got {item.frequency_days!r}")
    if item.frequency_days <= 0:
        raise InvalidFrequency(
            f"'{item.name}': frequency_days must be positive, got {item.frequency_days}")
    check_amount(item.amount, f"'{item.name}' amount")

def validate_inputs(start_date, end_date, starting_balance, recurring_items, min_balance):
    """
    Rejects malformed inputs before any computation starts.
    """
    if start_date > end_date:
        raise InvalidRange(
            f"start date {start_date.isoformat()} is after end date {end_date.isoformat()}")
    if start_date < FIRST_SUPPORTED_DATE or end_date > LAST_SUPPORTED_DATE:
        raise InvalidRange(
            f"range must fall within {FIRST_SUPPORTED_DATE.isoformat()}"
            f" and {LAST_SUPPORTED_DATE.isoformat()}")
    check_amount(starting_balance, "starting_balance")
    check_amount(min_balance, "min_balance")
    for item in recurring_items:
        validate_item(item)

# --- 4. FORECAST ENGINE ---

def get_occurrences(item, end_date):
    """
    Expands an item from its next_date up to end_date inclusive.
    No lower bound is applied; days before the window are never visited.
    """
    step = relativedelta(days=item.frequency_days)
    occurrences = []
    current_date = item.next_date
    while current_date <= end_date:
        occurrences.append(current_date)
        try:
            current_date = current_date + step
        except OverflowError:
            break
    return occurrences

def index_occurrences(recurring_items, end_date):
    """Maps each calendar day to the items occurring on it, in input order."""
    cash_flows = {}
    for item in recurring_items:
        for occurrence in get_occurrences(item, end_date):
            cash_flows.setdefault(occurrence, []).append(item)
    return cash_flows

def classify(item):
    if item.amount > 0:
        return INCOME
    if TRANSFER in item.name.lower():
        return TRANSFER
    return EXPENSE

def format_amount(value):
    """Formats a dollar figure the way descriptions show it: 500, 200.5."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))

def clamp_savings_transfer(item, current_balance, min_balance):
    """
    Moves as much of a savings goal as the balance allows without going
    under min_balance. Returns the transaction and the new balance.
    """
    original_amount = abs(item.amount)
    max_transfer = max(0, current_balance - min_balance)
    transferred = min(original_amount, max_transfer)

    if transferred < original_amount:
        description = (f"{item.name} (adjusted from ${format_amount(original_amount)}"
                       f" to ${format_amount(transferred)})")
    else:
        description = item.name

    transaction = Transaction(description=description, amount=-transferred, type=SAVINGS)
    return transaction, current_balance - transferred

def generate_forecast(start_date, end_date, starting_balance, recurring_items, min_balance):
    """
    Projects the balance for every day in [start_date, end_date].

    Regular items are summed into the day's net change first; savings goals
    are then clamped one by one against the updated balance so they never
    take it below min_balance. Savings amounts move the balance but are not
    part of net_change.

    Returns a list of DayEntry ordered from end_date back to start_date.
    """
    start_date = to_date(start_date)
    end_date = to_date(end_date)
    recurring_items = list(recurring_items)
    validate_inputs(start_date, end_date, starting_balance, recurring_items, min_balance)

    cash_flows = index_occurrences(recurring_items, end_date)
    logger.debug("Forecast %s..%s: %d items, %d occurrence days",
                 start_date, end_date, len(recurring_items), len(cash_flows))

    days = []
    current_balance = starting_balance
    for timestamp in pd.date_range(start=start_date, end=end_date, freq='D'):
        day = timestamp.date()
        entries = cash_flows.get(day, [])
        net_change = 0
        transactions = []

        for item in entries:
            if not item.is_savings_goal:
                net_change += item.amount
                transactions.append(Transaction(
                    description=item.name, amount=item.amount, type=classify(item)))

        current_balance += net_change

        for item in entries:
            if item.is_savings_goal:
                transaction, current_balance = clamp_savings_transfer(
                    item, current_balance, min_balance)
                transactions.append(transaction)

        days.append(DayEntry(
            date=day,
            ending_balance=current_balance,
            net_change=net_change,
            transactions=tuple(transactions),
        ))

    days.reverse()
    return days

# --- 5. HOST DEFAULTS ---

SAMPLE_STARTING_BALANCE = 4000
SAMPLE_MIN_BALANCE = 800
SAMPLE_RECURRING_ITEMS = (
    RecurringItem(name="Paycheck", amount=2000, frequency_days=14,
                  next_date=date(2025, 6, 7)),
    RecurringItem(name="Mortgage", amount=-2500, frequency_days=30,
                  next_date=date(2025, 6, 5)),
    RecurringItem(name="Emergency Fund", amount=-500, frequency_days=30,
                  next_date=date(2025, 6, 10), is_savings_goal=True),
)

def default_range(today, years_back=2, years_ahead=5):
    """The timeline window around an injected 'today'."""
    today = to_date(today)
    return today - relativedelta(years=years_back), today + relativedelta(years=years_ahead)
