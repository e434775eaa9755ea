"""Tests for positions, campaigns and rewards API endpoints."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from services.incentives.src.incentives.db.campaigns_repository import CampaignRepository
from services.incentives.src.incentives.db.engine import init_db
from services.incentives.src.incentives.db.positions_repository import PositionRepository
from services.incentives.src.incentives.db.rewards_repository import RewardRepository
from services.incentives.src.incentives.domain.models import (
    Campaign,
    CampaignCheckpoint,
    Position,
    UserReward,
)
from services.incentives.src.incentives.main import app
from services.incentives.src.incentives.routes.deps import get_db_engine

ALICE = "0x00000000000000000000000000000000000a11ce"
BOB = "0x0000000000000000000000000000000000000b0b"
BIG = 2**200


@pytest.fixture
def engine():
    # One shared connection: TestClient runs handlers in another thread
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return engine


@pytest.fixture
def client(engine):
    app.dependency_overrides[get_db_engine] = lambda: engine
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def campaign():
    return Campaign(
        id="weth-rewards",
        reward_token="0x4200000000000000000000000000000000000006",
        target_token="0x833589fcd6edb6e08f4c7c32d4f71b54bda02913",
        start_timestamp=1_700_000_000,
        end_timestamp=1_702_592_000,
        total_reward_budget=BIG,
        daily_reward_budget=500,
    )


class TestPositionsEndpoints:

    def test_empty(self, client):
        response = client.get("/api/positions")

        assert response.status_code == 200
        assert response.json() == {"count": 0, "positions": []}

    def test_lists_positions_with_string_amounts(self, client, engine):
        PositionRepository(engine).save_batch([
            Position(address=ALICE, debt_balance=BIG, net_borrow_balance_time=BIG * 7,
                     last_updated_block=10, last_updated_timestamp=1_700_000_000),
        ])

        data = client.get("/api/positions").json()

        assert data["count"] == 1
        position = data["positions"][0]
        assert position["address"] == ALICE
        assert position["debt_balance"] == str(BIG)
        assert position["net_lending"] == str(-BIG)
        assert position["net_borrow_balance_time"] == str(BIG * 7)
        assert position["eligible"] is True
        assert position["last_updated_at"].startswith("2023-11-14T22:13:20")

    def test_eligible_only_filter(self, client, engine):
        PositionRepository(engine).save_batch([
            Position(address=ALICE, debt_balance=10),
            Position(address=BOB, supply_balance=10),
        ])

        data = client.get("/api/positions", params={"eligible_only": True}).json()

        assert data["count"] == 1
        assert data["positions"][0]["address"] == ALICE

    def test_get_position_normalizes_address(self, client, engine):
        PositionRepository(engine).save_batch([Position(address=ALICE, supply_balance=5)])

        response = client.get(f"/api/positions/{ALICE.upper().replace('0X', '0x')}")

        assert response.status_code == 200
        assert response.json()["supply_balance"] == "5"

    def test_get_position_not_found(self, client):
        response = client.get(f"/api/positions/{BOB}")

        assert response.status_code == 404


class TestCampaignsEndpoints:

    def test_list_includes_checkpoint(self, client, engine, campaign):
        repo = CampaignRepository(engine)
        repo.create(campaign)
        repo.save_checkpoint(CampaignCheckpoint(
            campaign_id=campaign.id, last_calculated_block=99, last_calculated_timestamp=1_700_086_400,
        ))

        data = client.get("/api/campaigns").json()

        assert len(data) == 1
        assert data[0]["id"] == "weth-rewards"
        assert data[0]["total_reward_budget"] == str(BIG)
        assert data[0]["daily_reward_budget"] == "500"
        assert data[0]["checkpoint"]["last_calculated_block"] == 99

    def test_get_campaign_without_checkpoint(self, client, engine, campaign):
        CampaignRepository(engine).create(campaign)

        data = client.get("/api/campaigns/weth-rewards").json()

        assert data["status"] == "active"
        assert data["checkpoint"] is None

    def test_get_campaign_not_found(self, client):
        assert client.get("/api/campaigns/missing").status_code == 404


class TestRewardsEndpoints:

    def test_empty_for_unknown_address(self, client):
        response = client.get(f"/api/rewards/{BOB}")

        assert response.status_code == 200
        assert response.json() == {"address": BOB, "rewards": []}

    def test_returns_rewards_as_strings(self, client, engine):
        RewardRepository(engine).save_reward(UserReward(
            address=ALICE,
            campaign_id="weth-rewards",
            reward_token="0x4200000000000000000000000000000000000006",
            period_reward=BIG,
            cumulative_reward=BIG * 3,
            last_calculated_block=42,
            last_calculated_timestamp=1_700_000_000,
        ))

        data = client.get(f"/api/rewards/{ALICE}").json()

        assert data["address"] == ALICE
        assert data["rewards"] == [{
            "campaign_id": "weth-rewards",
            "reward_token": "0x4200000000000000000000000000000000000006",
            "period_reward": str(BIG),
            "cumulative_reward": str(BIG * 3),
            "last_calculated_block": 42,
            "last_calculated_timestamp": 1_700_000_000,
        }]
