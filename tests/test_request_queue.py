from ethipc.rpc.protocol import CallIdCounter, OperationKind
from ethipc.rpc.queue import RequestQueue


def _requests(n: int):
    counter = CallIdCounter()
    return [counter.build(OperationKind.GET_PEER_COUNT) for _ in range(n)]


def test_fifo_order_and_positions():
    queue = RequestQueue()
    reqs = _requests(3)
    positions = [queue.enqueue(r) for r in reqs]
    assert positions == [1, 2, 3]
    assert [queue.dequeue_next().call_id for _ in range(3)] == [0, 1, 2]
    assert queue.dequeue_next() is None
    assert not queue


def test_clear_reports_dropped_count():
    queue = RequestQueue()
    for r in _requests(4):
        queue.enqueue(r)
    assert queue.clear() == 4
    assert len(queue) == 0
    assert queue.clear() == 0


def test_status_reports_head():
    queue = RequestQueue()
    assert queue.status() == {"queueDepth": 0, "headCallId": None, "headMethod": None}
    for r in _requests(2):
        queue.enqueue(r)
    assert queue.status() == {"queueDepth": 2, "headCallId": 0, "headMethod": "net_peerCount"}
    assert [r.call_id for r in queue] == [0, 1]
