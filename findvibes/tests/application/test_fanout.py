import threading

from findvibes.application.fanout import fan_out


def test_empty_input_returns_no_outcomes():
    assert fan_out(lambda x: x, []) == []


def test_outcomes_follow_input_order():
    outcomes = fan_out(lambda x: x * 2, [3, 1, 2], max_workers=3)

    assert [o.item for o in outcomes] == [3, 1, 2]
    assert [o.value for o in outcomes] == [6, 2, 4]
    assert all(o.ok for o in outcomes)


def test_errors_are_captured_per_item():
    def func(x):
        if x == 2:
            raise ValueError("boom")
        return x

    outcomes = fan_out(func, [1, 2, 3])

    assert [o.ok for o in outcomes] == [True, False, True]
    assert isinstance(outcomes[1].error, ValueError)
    assert outcomes[1].value is None
    assert outcomes[2].value == 3


def test_calls_run_concurrently():
    barrier = threading.Barrier(3, timeout=5)

    def func(x):
        barrier.wait()
        return x

    outcomes = fan_out(func, [1, 2, 3], max_workers=3)

    assert all(o.ok for o in outcomes)
