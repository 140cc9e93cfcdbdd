# hospitality_pricer/models/team.py
from pydantic import BaseModel

TBD = "TBD"


class Team(BaseModel):
    """A participating team; knockout slots stay TBD until decided."""

    name: str = TBD
    code: str = ""


class Venue(BaseModel):
    name: str = ""
    code: str = ""
    town: str = ""
    country: str = ""
