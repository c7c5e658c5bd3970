import pandas as pd

from engine import SAVINGS, TRANSACTION_TYPES, DayEntry

CALENDAR_COLUMNS = ['date', 'credits', 'debits', 'net_change', 'savings', 'balance', 'is_actual']

def filter_with_activity(days):
    """Keeps only the days that have at least one transaction."""
    return [day for day in days if day.transactions]

def filter_transaction_types(days, types):
    """
    Keeps only transactions whose type is in `types`. Days themselves are
    kept, with their balances untouched.
    """
    types = set(types)
    unknown = types - set(TRANSACTION_TYPES)
    if unknown:
        raise ValueError(f"Unknown transaction type(s): {', '.join(sorted(unknown))}")

    return [
        DayEntry(
            date=day.date,
            ending_balance=day.ending_balance,
            net_change=day.net_change,
            transactions=tuple(t for t in day.transactions if t.type in types),
            is_actual=day.is_actual,
        )
        for day in days
    ]

def find_today_index(days, today):
    for index, day in enumerate(days):
        if day.date == today:
            return index
    return None

def parse_types(raw):
    """Splits a comma-separated type list, e.g. 'income,savings'."""
    if not raw:
        return None
    return [part.strip().lower() for part in raw.split(',') if part.strip()]

def day_to_dict(day):
    return {
        'date': day.date.isoformat(),
        'ending_balance': day.ending_balance,
        'net_change': day.net_change,
        'is_actual': day.is_actual,
        'transactions': [
            {'description': t.description, 'amount': t.amount, 'type': t.type}
            for t in day.transactions
        ],
    }

def days_to_records(days):
    return [day_to_dict(day) for day in days]

def calendar_frame(days):
    """
    Tabulates the forecast into one row per day, oldest first, with the
    day's credits, debits and applied savings next to the ending balance.
    """
    if not days:
        return pd.DataFrame(columns=CALENDAR_COLUMNS)

    rows = []
    for day in days:
        credits = sum(t.amount for t in day.transactions if t.type != SAVINGS and t.amount > 0)
        debits = sum(t.amount for t in day.transactions if t.type != SAVINGS and t.amount <= 0)
        savings = sum(t.amount for t in day.transactions if t.type == SAVINGS)
        rows.append({
            'date': day.date,
            'credits': credits,
            'debits': debits,
            'net_change': day.net_change,
            'savings': savings,
            'balance': day.ending_balance,
            'is_actual': day.is_actual,
        })

    calendar_df = pd.DataFrame(rows, columns=CALENDAR_COLUMNS)
    calendar_df['date'] = pd.to_datetime(calendar_df['date'])
    calendar_df = calendar_df.sort_values('date').reset_index(drop=True)
    calendar_df[['credits', 'debits', 'net_change', 'savings', 'balance']] = (
        calendar_df[['credits', 'debits', 'net_change', 'savings', 'balance']].astype(float))
    calendar_df['is_actual'] = calendar_df['is_actual'].astype(bool)
    return calendar_df
