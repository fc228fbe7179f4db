import asyncio
import time

from pathease.errors import PartnerLocationUnavailable, PermissionDeniedError
from pathease.guardian import GuardianTracker, LocationSharer, PartnerPoller
from pathease.models import Coordinate, GuardianConnection, LiveLocationSample, NavStatus
from pathease.navigation import Navigator

from conftest import MUMBAI, MUMBAI_NEARBY, PUNE


def sample(coordinate, age=10):
    return LiveLocationSample(coordinate=coordinate, age_seconds=age)


def test_stale_reply_does_not_overwrite_newer_one(logger):
    poller = PartnerPoller(lambda p: None, logger=logger)
    poller.partner = "mom@example.com"
    first = poller.issue()
    second = poller.issue()

    # The later request resolves first
    assert poller.resolve(second, "mom@example.com", sample(PUNE))
    assert not poller.resolve(first, "mom@example.com", sample(MUMBAI))
    assert poller.sample.coordinate == PUNE
    assert poller.status_message == "mom@example.com last updated: Just now"


def test_in_order_replies_are_all_kept(logger):
    poller = PartnerPoller(lambda p: None, logger=logger)
    poller.partner = "mom@example.com"
    first, second = poller.issue(), poller.issue()
    assert poller.resolve(first, "mom@example.com", sample(MUMBAI, age=300))
    assert poller.status_message == "mom@example.com last updated: 5 mins ago"
    assert poller.resolve(second, "mom@example.com", sample(PUNE))
    assert poller.sample.coordinate == PUNE


def test_failure_keeps_last_good_sample(logger):
    poller = PartnerPoller(lambda p: None, logger=logger)
    poller.partner = "mom@example.com"
    poller.resolve(poller.issue(), "mom@example.com", sample(MUMBAI))
    assert poller.fail(poller.issue(), "mom@example.com", PartnerLocationUnavailable("offline"))
    assert poller.sample.coordinate == MUMBAI
    assert poller.error.endswith("offline")
    assert poller.status_message == "Waiting for mom@example.com..."

    # A later success clears the flag
    poller.resolve(poller.issue(), "mom@example.com", sample(PUNE))
    assert poller.error is None


def test_reply_for_previous_partner_is_ignored(logger):
    poller = PartnerPoller(lambda p: None, logger=logger)
    poller.partner = "dad@example.com"
    assert not poller.resolve(poller.issue(), "mom@example.com", sample(MUMBAI))
    assert poller.sample is None


def test_poll_loop_discards_slow_stale_reply(logger):
    calls = []

    def fetch(partner):
        calls.append(partner)
        n = len(calls)
        if n == 1:
            time.sleep(0.2)
            return sample(PUNE)
        return sample(MUMBAI)

    async def main():
        poller = PartnerPoller(fetch, interval=0.05, logger=logger)
        poller.select("mom@example.com")
        assert poller.running
        await asyncio.sleep(0.35)
        poller.stop()
        assert not poller.running
        return poller

    poller = asyncio.run(main())
    assert len(calls) >= 3
    assert poller.sample.coordinate == MUMBAI


def test_malformed_partner_location_is_flagged(logger):
    replies = iter([{"lat": MUMBAI.lat, "lng": MUMBAI.lng}] + [{"lat": None, "lng": None}] * 50)
    unhandled = []

    async def main():
        asyncio.get_running_loop().set_exception_handler(lambda loop, context: unhandled.append(context))
        poller = PartnerPoller(lambda p: LiveLocationSample.from_dict(next(replies)),
                               interval=0.02, logger=logger)
        poller.select("mom@example.com")
        await asyncio.sleep(0.15)
        poller.stop()
        return poller

    poller = asyncio.run(main())
    assert poller.sample.coordinate == MUMBAI
    assert "no usable coordinates" in poller.error
    assert poller.status_message == "Waiting for mom@example.com..."
    assert unhandled == []


def test_select_none_stops_polling(logger):
    async def main():
        poller = PartnerPoller(lambda p: sample(MUMBAI), interval=0.01, logger=logger)
        poller.select("mom@example.com")
        await asyncio.sleep(0.03)
        poller.select(None)
        assert not poller.running
        assert poller.partner is None
        assert poller.sample is None
        assert poller.status_message == "Ready to track."

    asyncio.run(main())


def test_poll_errors_do_not_end_the_loop(logger):
    results = iter([PartnerLocationUnavailable("offline")] + [sample(MUMBAI)] * 50)

    def fetch(partner):
        result = next(results)
        if isinstance(result, Exception):
            raise result
        return result

    async def main():
        poller = PartnerPoller(fetch, interval=0.01, logger=logger)
        poller.select("mom@example.com")
        await asyncio.sleep(0.05)
        poller.stop()
        return poller

    poller = asyncio.run(main())
    assert poller.sample.coordinate == MUMBAI
    assert poller.error is None


def test_sharer_pushes_each_sample(source, logger):
    pushed = []

    async def main():
        sharer = LocationSharer(source, pushed.append, logger=logger)
        sharer.start()
        sharer.start()
        assert source.start_calls == 1
        source.push(MUMBAI)
        await asyncio.sleep(0.05)
        assert sharer.status_message == "Live location sharing active."
        sharer.stop()
        return sharer

    sharer = asyncio.run(main())
    assert pushed == [MUMBAI]
    assert sharer.my_location == MUMBAI
    assert not sharer.sharing
    assert sharer.status_message == "Stopped sharing location."
    assert source.handles[0].release_count == 1


def test_stopping_sharing_keeps_navigation_watching(source, announcer, logger, two_stop_itinerary):
    pushed = []

    async def main():
        navigator = Navigator(source, announcer=announcer, logger=logger, itinerary=two_stop_itinerary)
        sharer = LocationSharer(source, pushed.append, logger=logger)
        navigator.start()
        sharer.start()
        nav_handle, share_handle = source.handles
        assert nav_handle is not share_handle

        source.push(PUNE)
        await asyncio.sleep(0.05)
        sharer.stop()
        assert not share_handle.active
        assert nav_handle.active and source.watching

        source.push(MUMBAI_NEARBY)
        return navigator

    navigator = asyncio.run(main())
    assert pushed == [PUNE]
    assert navigator.status is NavStatus.NAVIGATING
    assert navigator.state.visited == {(0, 0)}


def test_sharer_reports_location_errors(source, logger):
    sharer = LocationSharer(source, lambda loc: None, logger=logger)
    sharer.start()
    source.fail(PermissionDeniedError("denied"))
    assert not sharer.sharing
    assert sharer.status_message == "Error: denied"


class FakeClient:
    def __init__(self):
        self.requests = []

    def get_partner_location(self, requester, target):
        return sample(MUMBAI_NEARBY)

    def update_live_location(self, email, coordinate):
        return {"message": "ok"}

    def get_my_connections(self, email):
        return [GuardianConnection(id="1", partner_email="mom@example.com")]

    def send_tracking_request(self, requester, target):
        self.requests.append((requester, target))
        return "Request sent"

    def stop_tracking(self, requester, target):
        return "Tracking stopped"


def test_tracker_distance_and_connections(source, logger):
    tracker = GuardianTracker(FakeClient(), "me@example.com", source, logger=logger)
    assert tracker.refresh_connections()[0].partner_email == "mom@example.com"
    assert tracker.send_request("Dad@Example.com") == "Request sent"
    assert tracker.client.requests == [("me@example.com", "dad@example.com")]

    assert tracker.distance_to_partner() is None
    tracker.poller.partner = "mom@example.com"
    tracker.poller.resolve(tracker.poller.issue(), "mom@example.com", sample(MUMBAI_NEARBY))
    source.last_location = MUMBAI
    assert 0 < tracker.distance_to_partner() < 15
    assert tracker.map_center() == MUMBAI_NEARBY


def test_stop_tracking_deselects_partner(source, logger):
    async def main():
        tracker = GuardianTracker(FakeClient(), "me@example.com", source, logger=logger, interval=0.01)
        tracker.select_partner("mom@example.com")
        await asyncio.sleep(0.02)
        assert tracker.stop_tracking("mom@example.com") == "Tracking stopped"
        assert tracker.poller.partner is None
        assert not tracker.poller.running
        tracker.close()

    asyncio.run(main())


def test_live_sample_from_backend_payload():
    s = LiveLocationSample.from_dict({"lat": 19.07, "lng": 72.87, "age_seconds": 125,
                                      "updatedAt": "2024-01-01T10:00:00Z"})
    assert s.coordinate == Coordinate(19.07, 72.87)
    assert s.age_text() == "2 mins ago"
    assert s.updated_at == "2024-01-01T10:00:00Z"
