from datetime import datetime

import pytest

from dogwalk.actions import AddMember
from dogwalk.models import DogProfile, HouseholdState
from dogwalk.reducer import register

# Monday morning, half an hour before the first seeded walk.
START = datetime(2024, 3, 4, 6, 30)


@pytest.fixture
def smiths() -> HouseholdState:
    transition = register(
        "Smiths",
        [AddMember("Alice"), AddMember("Bob")],
        at=START,
        secret="woof",
        dog=DogProfile(name="Rex", breed="Beagle", age=3, weight=11.5),
    )
    assert transition.outcome.ok
    return transition.state
