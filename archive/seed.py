"""
Default archive contents written when the store holds no funds yet.
"""

import copy

DEFAULT_FUNDS = [
    {
        "id": "f1",
        "name": "City Council Records",
        "number": "F.1",
        "description": "Minutes, ordinances and correspondence of the city council, 1875-1940.",
        "start_year": "1875",
        "end_year": "1940",
        "inventories": [
            {
                "id": "i1",
                "title": "Administrative documents",
                "number": "Inv.1",
                "description": "Charters, meeting minutes, membership rolls",
                "cases": [
                    {
                        "id": "c1",
                        "title": "Founding charter",
                        "number": "C.1",
                        "year": "1875",
                        "description": "Original charter adopted at the founding session",
                    },
                    {
                        "id": "c2",
                        "title": "Meeting minutes 1875-1880",
                        "number": "C.2",
                        "year": "1880",
                        "description": "Bound minutes of the regular sessions",
                    },
                ],
            },
        ],
    },
]


def default_funds() -> list:
    """Fresh copy of the default funds"""
    return copy.deepcopy(DEFAULT_FUNDS)
