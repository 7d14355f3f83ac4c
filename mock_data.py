import random
from datetime import date, timedelta
from typing import Any, Dict, List

from models import PublisherAccount

MOCK_ACCOUNT_NAME = "accounts/pub-0000000000000000"

MOCK_COUNTRIES = ["US", "CA", "GB", "DE", "JP", "BR", "IN"]
MOCK_APPS = [
    ("ca-app-pub-0000000000000000~1111111111", "Puzzle Quest"),
    ("ca-app-pub-0000000000000000~2222222222", "Daily Weather"),
    ("ca-app-pub-0000000000000000~3333333333", None),
]


def generate_mock_report(start_date: date, end_date: date, seed: int = 7) -> List[Dict[str, Any]]:
    rng = random.Random(seed)
    items: List[Dict[str, Any]] = [{
        "header": {
            "dateRange": {
                "startDate": {"year": start_date.year, "month": start_date.month, "day": start_date.day},
                "endDate": {"year": end_date.year, "month": end_date.month, "day": end_date.day},
            },
            "localizationSettings": {"currencyCode": "USD", "languageCode": "en-US"},
        }
    }]

    day = start_date
    while day <= end_date:
        for country in MOCK_COUNTRIES:
            for app_id, label in MOCK_APPS:
                impressions = rng.randint(0, 5000)
                clicks = rng.randint(0, max(1, impressions // 50))
                earnings_micros = int(impressions * rng.uniform(500, 4000))

                app_value = {"value": app_id}
                if label:
                    app_value["displayLabel"] = label

                items.append({
                    "row": {
                        "dimensionValues": {
                            "DATE": {"value": day.strftime("%Y%m%d")},
                            "COUNTRY": {"value": country},
                            "APP": app_value,
                        },
                        "metricValues": {
                            "ESTIMATED_EARNINGS": {"microsValue": str(earnings_micros)},
                            "IMPRESSIONS": {"integerValue": str(impressions)},
                            "CLICKS": {"integerValue": str(clicks)},
                        },
                    }
                })
        day += timedelta(days=1)

    items.append({"footer": {"matchingRowCount": str(len(items) - 1)}})
    return items


class MockAdMobClient:
    """Drop-in replacement for AdMobClient that serves generated reports."""

    def __init__(self, seed: int = 7):
        self.seed = seed

    def list_accounts(self) -> Dict[str, Any]:
        return {"account": [{
            "name": MOCK_ACCOUNT_NAME,
            "publisherId": MOCK_ACCOUNT_NAME.split("/")[-1],
            "reportingTimeZone": "America/Los_Angeles",
            "currencyCode": "USD",
        }]}

    def fetch_account(self) -> PublisherAccount:
        return PublisherAccount.model_validate(self.list_accounts()["account"][0])

    def generate_report(self, account_name: str, start_date: date, end_date: date) -> List[Dict[str, Any]]:
        return generate_mock_report(start_date, end_date, seed=self.seed)
