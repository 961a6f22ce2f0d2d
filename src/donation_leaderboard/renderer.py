"""Leaderboard markup: entry selection, placeholder substitution and styles."""

import re
import secrets
import string
import time
from string import Template
from typing import Callable, Sequence

from donation_leaderboard.formatting import (
    clean,
    country_name,
    format_amount,
    format_order_date,
    format_order_datetime,
    get_company_or_name,
    get_initials,
    human_time_diff,
    strip_tags,
)
from donation_leaderboard.schemas import LeaderboardSettings, OrderRecord, ProductFilter

_TOKEN = re.compile(r"\{[a-z_]+\}")
_ID_ALPHABET = string.ascii_letters + string.digits

_HIDDEN_CSS = Template("#$id .leaderboard-hidden { display: none; }\n")

_STYLE_1 = Template(
    """#$id {
  --leaderboard-accent: $accent;
  --leaderboard-inactive: lightgrey;
  list-style: none;
  padding: 0;
  margin: 0;
}
#$id .leaderboard-li {
  position: relative;
  padding: 12px 0 12px 36px;
}
#$id .leaderboard-li::before {
  content: "";
  position: absolute;
  left: 12px;
  top: 0;
  bottom: 0;
  width: 2px;
  background-color: var(--leaderboard-inactive);
}
#$id .leaderboard-li:first-child::before {
  top: 50%;
}
#$id .leaderboard-li:last-child::before {
  bottom: 50%;
}
#$id .leaderboard-li::after {
  content: "";
  position: absolute;
  left: 8px;
  top: 50%;
  transform: translateY(-50%);
  width: 10px;
  height: 10px;
  background-color: var(--leaderboard-accent);
  border-radius: 50%;
}
#$id .leaderboard-title {
  font-size: 1.2em;
  font-weight: bold;
}
#$id .leaderboard-amount {
  font-weight: bold;
  color: var(--leaderboard-accent);
}
#$id .leaderboard-subtitle {
  font-size: 1em;
}
"""
)

_STYLE_2 = Template(
    """#$id {
  list-style: none;
  padding: 0;
  margin: 0;
}
#$id .leaderboard-li {
  padding: 3px 0;
}
#$id .leaderboard-li div {
  display: inline-block;
}
#$id .leaderboard-li::before {
  content: "";
  background-image: url("$icon_url");
  background-size: auto;
  width: 1.39em;
  height: 1em;
  margin-right: 5px;
  display: inline-block;
}
#$id .leaderboard-title, #$id .leaderboard-amount, #$id .leaderboard-emphasized {
  font-weight: bold;
}
"""
)

_REVEAL_SCRIPT = Template(
    """<script>
(function () {
  var separator = document.querySelector('#$id .leaderboard-separator');
  if (!separator) return;
  separator.addEventListener('click', function () {
    document.querySelectorAll('#$id .leaderboard-hidden').forEach(function (item) {
      item.classList.remove('leaderboard-hidden');
    });
    separator.style.display = 'none';
  }, { once: true });
})();
</script>"""
)


def select_orders(
    orders: Sequence[OrderRecord],
    product_ids: frozenset[int] | ProductFilter,
    limit: int,
) -> list[OrderRecord]:
    """Filter by product membership (unless MATCH_ALL) and keep the first ``limit``."""
    if product_ids is ProductFilter.MATCH_ALL:
        selected = list(orders)
    else:
        selected = [order for order in orders if order.product_ids & product_ids]
    if limit == -1:
        return selected
    return selected[: max(limit, 0)]


def _generate_id() -> str:
    return "leaderboard-" + "".join(secrets.choice(_ID_ALPHABET) for _ in range(6))


def _substitute(template: str, placeholders: dict[str, str]) -> str:
    return _TOKEN.sub(lambda match: placeholders.get(match.group(0), match.group(0)), template)


class LeaderboardRenderer:
    def __init__(
        self,
        settings: LeaderboardSettings,
        clock: Callable[[], float] = time.time,
        id_factory: Callable[[], str] = _generate_id,
    ) -> None:
        self._settings = settings
        self._clock = clock
        self._id_factory = id_factory

    def placeholders(self, order: OrderRecord, now: float) -> dict[str, str]:
        s = self._settings
        return {
            "{firstname}": clean(order.billing_first_name),
            "{firstname_initial}": clean(get_initials(strip_tags(order.billing_first_name))),
            "{lastname}": clean(order.billing_last_name),
            "{lastname_initial}": clean(get_initials(strip_tags(order.billing_last_name))),
            "{company}": clean(order.company),
            "{company_or_name}": get_company_or_name(order.company, order.billing_first_name, order.billing_last_name),
            "{amount}": format_amount(order.total, order.currency, s.locale),
            "{timediff}": human_time_diff(order.completed_at, now, s.locale),
            "{datetime}": clean(
                format_order_datetime(order.completed_at, s.date_format, s.time_format, s.locale, s.timezone)
            ),
            "{date}": clean(format_order_date(order.completed_at, s.date_format, s.locale, s.timezone)),
            "{city}": clean(order.city),
            "{country}": clean(country_name(order.country, s.locale)),
            "{country_code}": clean(order.country),
            "{postcode}": clean(order.postcode),
            "{currency}": clean(order.currency),
            "{comment}": clean(order.customer_note),
        }

    def _style(self, fragment_id: str, style: int) -> str:
        if style == 2:
            return _STYLE_2.substitute(id=fragment_id, icon_url=self._settings.icon_url.replace('"', "%22"))
        return _STYLE_1.substitute(id=fragment_id, accent=self._settings.accent_color)

    def render(self, orders: Sequence[OrderRecord], title: str, subtitle: str, style: int = 1, split: int = -1) -> str:
        """Render ``orders`` as a self-contained <style>/<ul>/<script> fragment.

        Entries from index ``split`` on start hidden behind a "Show more"
        separator; ``split == -1`` shows everything.
        """
        title = clean(title)
        subtitle = clean(subtitle)
        fragment_id = self._id_factory()
        now = self._clock()

        style = 2 if style == 2 else 1
        parts = [
            "<style>",
            _HIDDEN_CSS.substitute(id=fragment_id),
            self._style(fragment_id, style),
            "</style>",
            f'<ul class="leaderboard leaderboard-s{style}" id="{fragment_id}">',
        ]

        hidden = ""
        separated = False
        for position, order in enumerate(orders):
            if position == split:
                hidden = " leaderboard-hidden"
                separated = True
                parts.append(
                    '<li class="leaderboard-separator">'
                    '<button class="button leaderboard-button" type="button">Show more</button></li>'
                )

            values = self.placeholders(order, now)
            parts.append(f'<li class="leaderboard-li{hidden}"><div>')
            if title:
                parts.append(f'<span class="leaderboard-title">{_substitute(title, values)}</span><br>')
            if subtitle:
                parts.append(f'<span class="leaderboard-subtitle">{_substitute(subtitle, values)}</span>')
            parts.append("</div></li>")
        parts.append("</ul>")

        if separated:
            parts.append(_REVEAL_SCRIPT.substitute(id=fragment_id))
        return "".join(parts)
