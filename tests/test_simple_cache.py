import pytest

from cadss.simple_cache import SimpleCache
from cadss.types import CacheAction, OpType, TraceOp


class FakeCoherence:
    def __init__(self, perm=False):
        self.perm = perm
        self.requests = []
        self.callback = None
        self.ticks = 0

    def register_cache_interface(self, callback):
        self.callback = callback

    def perm_req(self, is_read, addr, proc):
        self.requests.append((is_read, addr, proc))
        return self.perm

    def tick(self):
        self.ticks += 1
        return 0


def load(addr):
    return TraceOp(op=OpType.MEM_LOAD, address=addr, size=4)


def store(addr):
    return TraceOp(op=OpType.MEM_STORE, address=addr, size=4)


def test_registers_callback():
    coher = FakeCoherence()
    cache = SimpleCache(None, coher)
    assert coher.callback == cache.coher_callback


def test_default_block_size_keeps_address():
    coher = FakeCoherence(True)
    cache = SimpleCache(None, coher)
    cache.memory_request(load(0x1235), 0, 1, lambda p, t: None)
    assert coher.requests == [(True, 0x1235, 0)]


def test_block_alignment():
    coher = FakeCoherence(True)
    cache = SimpleCache(["cache", "-b", "6"], coher)
    assert cache.block_size == 64
    cache.memory_request(store(0x1234), 0, 1, lambda p, t: None)
    is_read, addr, proc = coher.requests[0]
    assert is_read is False
    assert addr % 64 == 0
    assert addr <= 0x1234 < addr + 64


def test_granted_request_completes_next_tick():
    coher = FakeCoherence(True)
    cache = SimpleCache(None, coher)
    done = []
    cache.memory_request(load(0x40), 0, 99, lambda p, t: done.append((p, t)))
    assert done == []
    assert cache.tick() == 1
    assert done == [(0, 99)]
    assert coher.ticks == 1
    cache.tick()
    assert done == [(0, 99)]


def test_pending_request_waits_for_data():
    coher = FakeCoherence(False)
    cache = SimpleCache(None, coher, processor_count=2)
    done = []
    cache.memory_request(load(0x40), 1, 5, lambda p, t: done.append((p, t)))
    cache.tick()
    assert done == []
    cache.coher_callback(CacheAction.DATA_RECV, 1, 0x40)
    cache.tick()
    assert done == [(1, 5)]


def test_non_data_action_ignored():
    coher = FakeCoherence(False)
    cache = SimpleCache(None, coher)
    done = []
    cache.memory_request(load(0x40), 0, 5, lambda p, t: done.append((p, t)))
    cache.coher_callback(CacheAction.INVALIDATE, 0, 0x40)
    cache.tick()
    assert done == []


def test_callback_without_pending_raises():
    cache = SimpleCache(None, FakeCoherence())
    with pytest.raises(RuntimeError):
        cache.coher_callback(CacheAction.DATA_RECV, 0, 0x40)


def test_callback_for_unknown_address_raises():
    cache = SimpleCache(None, FakeCoherence(False))
    cache.memory_request(load(0x40), 0, 5, lambda p, t: None)
    with pytest.raises(RuntimeError):
        cache.coher_callback(CacheAction.DATA_RECV, 0, 0x80)


def test_callback_processor_out_of_range():
    cache = SimpleCache(None, FakeCoherence(False))
    cache.memory_request(load(0x40), 0, 5, lambda p, t: None)
    with pytest.raises(IndexError):
        cache.coher_callback(CacheAction.DATA_RECV, 1, 0x40)


def test_ready_requests_run_most_recent_first():
    cache = SimpleCache(None, FakeCoherence(True))
    done = []
    cache.memory_request(load(0x40), 0, 1, lambda p, t: done.append(t))
    cache.memory_request(load(0x80), 0, 2, lambda p, t: done.append(t))
    cache.tick()
    assert done == [2, 1]


def test_matching_pending_request_chosen_among_several():
    cache = SimpleCache(None, FakeCoherence(False))
    done = []
    cache.memory_request(load(0x40), 0, 1, lambda p, t: done.append(t))
    cache.memory_request(load(0x80), 0, 2, lambda p, t: done.append(t))
    cache.coher_callback(CacheAction.DATA_RECV, 0, 0x40)
    cache.tick()
    assert done == [1]
    cache.coher_callback(CacheAction.DATA_RECV, 0, 0x80)
    cache.tick()
    assert done == [1, 2]


def test_requires_callback_and_op():
    cache = SimpleCache(None, FakeCoherence())
    with pytest.raises(ValueError):
        cache.memory_request(load(0x40), 0, 1, None)
    with pytest.raises(ValueError):
        cache.memory_request(None, 0, 1, lambda p, t: None)