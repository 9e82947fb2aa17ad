"""日時ヘルパー関数 - epoch milliseconds and countdown formatting"""
from datetime import datetime, timezone, timedelta


def utc_now() -> datetime:
    """現在のUTC時刻 (timezone-aware)"""
    return datetime.now(timezone.utc)


def to_epoch_ms(dt: datetime) -> float:
    """
    datetime を epoch milliseconds に変換

    Args:
        dt: 変換するdatetime（タイムゾーン情報がない場合はUTCとみなす）
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp() * 1000


def from_epoch_ms(ms: float) -> datetime:
    """epoch milliseconds をUTCのdatetimeに変換"""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """
    ISO 8601 文字列をUTCのdatetimeに変換

    PostgRESTの "Z" 付き・オフセットなしのタイムスタンプはどちらもUTCとして扱う
    """
    dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_countdown(remaining_ms: float) -> str:
    """
    残り時間を "MM:SS" 形式に変換

    Returns:
        str: "05:07" 形式の文字列 (minutes are not capped at 59)
    """
    total_seconds = int(max(0, remaining_ms) // 1000)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes:02d}:{seconds:02d}"


def minutes_to_ms(minutes: int) -> int:
    return int(timedelta(minutes=minutes) / timedelta(milliseconds=1))
