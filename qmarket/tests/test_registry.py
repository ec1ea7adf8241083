from __future__ import annotations

import pytest

from qmarket.errors import AlreadyRegistered, InvalidInput, NotFound

from . import T0, mk_market


def test_register_provider_sets_defaults():
    m, _ = mk_market()
    p = m.register_provider("p1", name="qpu-5", capacity=5, exec_time=60, price=10)
    assert p.address == "p1"
    assert p.is_active
    assert p.reputation == 100
    assert p.total_executions == 0
    assert p.registered_at == T0
    assert m.get_provider("p1") == p
    with m.ledger.view() as store:
        assert m.providers.is_registered(store, "p1")
        assert not m.providers.is_registered(store, "p2")


@pytest.mark.parametrize(
    "kwargs,field",
    [
        ({"capacity": 0}, "capacity"),
        ({"exec_time": 0}, "exec_time"),
        ({"price": 0}, "price"),
        ({"name": ""}, "name"),
    ],
)
def test_register_provider_validation(kwargs, field):
    m, _ = mk_market()
    args = dict(name="qpu", capacity=1, exec_time=1, price=1)
    args.update(kwargs)
    with pytest.raises(InvalidInput) as ei:
        m.register_provider("p1", **args)
    assert ei.value.details["field"] == field
    with pytest.raises(NotFound):
        m.get_provider("p1")


def test_provider_registers_once():
    m, _ = mk_market()
    m.register_provider("p1", name="a", capacity=1, exec_time=1, price=1)
    with pytest.raises(AlreadyRegistered):
        m.register_provider("p1", name="b", capacity=9, exec_time=1, price=1)
    assert m.get_provider("p1").name == "a"


def test_available_providers_filter_by_capacity_in_registration_order():
    m, _ = mk_market()
    m.register_provider("big", name="b", capacity=10, exec_time=1, price=1)
    m.register_provider("small", name="s", capacity=2, exec_time=1, price=1)
    m.register_provider("mid", name="m", capacity=5, exec_time=1, price=1)

    assert [p.address for p in m.get_available_providers(0)] == ["big", "small", "mid"]
    assert [p.address for p in m.get_available_providers(5)] == ["big", "mid"]
    assert m.get_available_providers(11) == []


def test_unknown_provider_lookups():
    m, _ = mk_market()
    with pytest.raises(NotFound) as ei:
        m.get_provider("ghost")
    assert ei.value.details == {"kind": "provider", "key": "ghost"}
    assert m.get_provider_jobs("ghost") == []
    assert m.get_client_jobs("ghost") == []


def test_register_algorithm_and_lookup():
    m, _ = mk_market()
    a = m.register_algorithm(
        "creator", ipfs_hash="QmGrover", name="grover", min_qubits=4, est_time=30, price=7, is_public=True
    )
    assert a.creator == "creator"
    assert a.usage_count == 0
    assert m.get_algorithm("QmGrover") == a


def test_algorithm_hash_is_unique():
    m, _ = mk_market()
    m.register_algorithm("c1", ipfs_hash="QmX", name="x", min_qubits=1, est_time=1, price=1, is_public=False)
    with pytest.raises(AlreadyRegistered):
        m.register_algorithm("c2", ipfs_hash="QmX", name="y", min_qubits=1, est_time=1, price=1, is_public=True)
    assert m.get_algorithm("QmX").creator == "c1"


@pytest.mark.parametrize(
    "kwargs",
    [{"ipfs_hash": ""}, {"name": " "}, {"min_qubits": 0}],
)
def test_register_algorithm_validation(kwargs):
    m, _ = mk_market()
    args = dict(ipfs_hash="QmY", name="y", min_qubits=1, est_time=1, price=1, is_public=True)
    args.update(kwargs)
    with pytest.raises(InvalidInput):
        m.register_algorithm("c", **args)


def test_unknown_algorithm_is_not_found():
    m, _ = mk_market()
    with pytest.raises(NotFound):
        m.get_algorithm("QmNope")
