from .encoder import to_dict, to_json
from .formatter import format_lp_price, format_wallet_summary
from .publisher import publish_json

__all__ = [
    "format_lp_price",
    "format_wallet_summary",
    "publish_json",
    "to_dict",
    "to_json",
]
