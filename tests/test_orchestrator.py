import asyncio
import base64

import pytest

from angle_studio.credentials import StaticCredentials
from angle_studio.errors import CredentialMissing, NoImageInResponse, SafetyBlocked
from angle_studio.models.angle import ANGLES
from angle_studio.models.resolution import Resolution
from angle_studio.models.variation import VariationStatus
from angle_studio.services import orchestrator as orchestrator_module
from angle_studio.services.orchestrator import Orchestrator
from angle_studio.services.registry import VariationRegistry
from conftest import image_size, make_png


@pytest.fixture
def registry() -> VariationRegistry:
    return VariationRegistry()


@pytest.fixture
def orchestrator(credentials, registry, endpoint) -> Orchestrator:
    return Orchestrator(credentials, registry, client_factory=endpoint.factory)


def test_run_settles_every_slot(orchestrator, endpoint, source_png):
    records = asyncio.run(orchestrator.run(source_png, Resolution.R1K))

    assert len(records) == 9
    assert all(r.status == VariationStatus.SUCCESS for r in records)
    assert all(image_size(r.image_data) == (1024, 1024) for r in records)
    assert len(endpoint.variation_calls) == 9
    assert endpoint.api_keys == ["test-key"]


def test_run_sends_angle_instruction_and_hints(orchestrator, endpoint):
    asyncio.run(orchestrator.run(make_png(1600, 900), Resolution.R2K))

    instructions = sorted(c["instruction"] for c in endpoint.variation_calls)
    assert instructions == sorted(a.instruction for a in ANGLES)
    assert {c["aspect_ratio"] for c in endpoint.variation_calls} == {"16:9"}
    assert {c["image_size"] for c in endpoint.variation_calls} == {"2K"}


def test_run_strips_data_url_header(orchestrator, endpoint, source_png):
    data_url = "data:image/png;base64," + base64.b64encode(source_png).decode()
    asyncio.run(orchestrator.run(data_url, Resolution.R1K))
    assert all(c["image"] == source_png for c in endpoint.variation_calls)


def test_wide_source_is_resized_to_wide_target(orchestrator):
    records = asyncio.run(orchestrator.run(make_png(1920, 1080), Resolution.R1K))
    assert {image_size(r.image_data) for r in records} == {(1920, 1080)}


def test_one_failure_is_isolated(orchestrator, endpoint, source_png, endpoint_error):
    endpoint.failures[ANGLES[3].instruction] = endpoint_error

    records = asyncio.run(orchestrator.run(source_png, Resolution.R1K))

    assert records[3].status == VariationStatus.ERROR
    assert records[3].image_data == b""
    assert "500 INTERNAL" in records[3].error
    others = [r for i, r in enumerate(records) if i != 3]
    assert all(r.status == VariationStatus.SUCCESS and r.image_data for r in others)


def test_every_failure_shape_becomes_error_status(orchestrator, endpoint, source_png):
    endpoint.failures[ANGLES[0].instruction] = SafetyBlocked("SAFETY")
    endpoint.failures[ANGLES[1].instruction] = NoImageInResponse()
    endpoint.failures[ANGLES[2].instruction] = RuntimeError("unexpected")

    records = asyncio.run(orchestrator.run(source_png, Resolution.R1K))

    assert [r.status for r in records[:3]] == [VariationStatus.ERROR] * 3
    assert all(r.status == VariationStatus.SUCCESS for r in records[3:])
    assert registry_is_settled(records)


def registry_is_settled(records) -> bool:
    return all(r.status in (VariationStatus.SUCCESS, VariationStatus.ERROR) for r in records)


def test_all_slots_loading_before_any_settles(orchestrator, registry, source_png):
    events = []
    registry.subscribe(lambda index, record: events.append((index, record.status)))

    asyncio.run(orchestrator.run(source_png, Resolution.R1K))

    statuses = [status for _, status in events]
    first_settled = next(
        i for i, s in enumerate(statuses) if s in (VariationStatus.SUCCESS, VariationStatus.ERROR)
    )
    assert statuses[:first_settled].count(VariationStatus.LOADING) == 9


def test_updates_are_pushed_as_each_call_settles(orchestrator, registry, endpoint, source_png):
    seen = []

    async def scenario():
        slow = asyncio.Event()
        endpoint.gates[ANGLES[0].instruction] = slow

        def on_update(index, record):
            seen.append((index, record.status))
            # Release the slow slot only once every other slot has settled
            if sum(1 for _, s in seen if s == VariationStatus.SUCCESS) == 8:
                slow.set()

        registry.subscribe(on_update)
        return await orchestrator.run(source_png, Resolution.R1K)

    records = asyncio.run(scenario())

    settled = [index for index, status in seen if status == VariationStatus.SUCCESS]
    assert settled[-1] == 0
    assert len(settled) == 9
    assert records[0].status == VariationStatus.SUCCESS


def test_normalizer_failure_keeps_unnormalized_image(orchestrator, endpoint, source_png):
    endpoint.outputs[ANGLES[5].instruction] = b"not-a-decodable-image"

    records = asyncio.run(orchestrator.run(source_png, Resolution.R1K))

    assert records[5].status == VariationStatus.SUCCESS
    assert records[5].image_data == b"not-a-decodable-image"


def test_normalization_can_be_disabled(credentials, registry, endpoint, source_png):
    orchestrator = Orchestrator(credentials, registry, endpoint.factory, normalize_output=False)
    records = asyncio.run(orchestrator.run(source_png, Resolution.R1K))
    assert {image_size(r.image_data) for r in records} == {(512, 512)}


def test_missing_credential_fails_before_any_call(registry, endpoint, source_png):
    orchestrator = Orchestrator(StaticCredentials(None), registry, endpoint.factory)

    with pytest.raises(CredentialMissing):
        asyncio.run(orchestrator.run(source_png, Resolution.R1K))

    assert endpoint.variation_calls == []
    assert len(registry) == 0


def test_empty_source_rejected(orchestrator):
    with pytest.raises(ValueError):
        asyncio.run(orchestrator.run(b"", Resolution.R1K))


def test_on_complete_receives_final_records(orchestrator, source_png):
    done = []
    asyncio.run(orchestrator.run(source_png, Resolution.R1K, on_complete=done.append))
    assert len(done) == 1
    assert registry_is_settled(done[0])


def test_retry_only_touches_one_slot(orchestrator, registry, endpoint, source_png, endpoint_error):
    endpoint.failures[ANGLES[3].instruction] = endpoint_error
    asyncio.run(orchestrator.run(source_png, Resolution.R1K))
    before = registry.records

    events = []
    registry.subscribe(lambda index, record: events.append((index, record.status)))
    del endpoint.failures[ANGLES[3].instruction]
    record = asyncio.run(orchestrator.retry(3, source_png, Resolution.R1K))

    assert record.status == VariationStatus.SUCCESS
    assert events == [(3, VariationStatus.LOADING), (3, VariationStatus.SUCCESS)]
    after = registry.records
    for i in range(9):
        if i != 3:
            assert after[i] == before[i]


def test_retry_can_fail_again(orchestrator, registry, endpoint, source_png, endpoint_error):
    endpoint.failures[ANGLES[7].instruction] = endpoint_error
    asyncio.run(orchestrator.run(source_png, Resolution.R1K))

    record = asyncio.run(orchestrator.retry(7, source_png, Resolution.R1K))

    assert record.status == VariationStatus.ERROR
    assert registry.get_stats()["success"] == 8


def test_retry_rejects_slot_in_flight(orchestrator, registry, source_png):
    registry.reset(ANGLES)
    with pytest.raises(ValueError):
        asyncio.run(orchestrator.retry(0, source_png, Resolution.R1K))


def test_undecodable_source_assumes_square(monkeypatch):
    calls = []
    monkeypatch.setattr(orchestrator_module.logger, "warning", lambda *args: calls.append(args))
    assert orchestrator_module.detect_aspect(b"garbage").value == "square"
    assert calls


def test_retry_without_credential_leaves_record_alone(registry, endpoint, source_png, endpoint_error):
    endpoint.failures[ANGLES[3].instruction] = endpoint_error
    asyncio.run(Orchestrator(StaticCredentials("test-key"), registry, endpoint.factory).run(source_png, Resolution.R1K))
    before = registry[3]
    calls = len(endpoint.variation_calls)

    orchestrator = Orchestrator(StaticCredentials(None), registry, endpoint.factory)
    with pytest.raises(CredentialMissing):
        asyncio.run(orchestrator.retry(3, source_png, Resolution.R1K))

    assert registry[3] == before
    assert registry.version(3) == before.version
    assert len(endpoint.variation_calls) == calls


def test_retry_regenerates_successful_slot(orchestrator, registry, endpoint, source_png):
    asyncio.run(orchestrator.run(source_png, Resolution.R1K))
    before = registry[6]
    events = []
    registry.subscribe(lambda index, record: events.append((index, record.status)))

    endpoint.outputs[ANGLES[6].instruction] = make_png(512, 512, color=(1, 2, 3))
    record = asyncio.run(orchestrator.retry(6, source_png, Resolution.R1K))

    assert events == [(6, VariationStatus.LOADING), (6, VariationStatus.SUCCESS)]
    assert record.status == VariationStatus.SUCCESS
    assert record.id == before.id
    assert record.image_data != before.image_data
    assert record.version > before.version


def test_retry_settles_while_another_slot_is_loading(orchestrator, registry, endpoint, source_png, endpoint_error):
    endpoint.failures[ANGLES[3].instruction] = endpoint_error
    asyncio.run(orchestrator.run(source_png, Resolution.R1K))
    del endpoint.failures[ANGLES[3].instruction]

    async def scenario():
        gate = asyncio.Event()
        endpoint.gates[ANGLES[0].instruction] = gate
        slot0 = asyncio.create_task(orchestrator.retry(0, source_png, Resolution.R1K))
        await asyncio.sleep(0)
        assert registry[0].status == VariationStatus.LOADING

        retried = await orchestrator.retry(3, source_png, Resolution.R1K)
        slot0_during = registry[0].status

        gate.set()
        await slot0
        return retried, slot0_during

    retried, slot0_during = asyncio.run(scenario())

    assert retried.status == VariationStatus.SUCCESS
    assert slot0_during == VariationStatus.LOADING
    assert registry[0].status == VariationStatus.SUCCESS
