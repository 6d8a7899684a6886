import threading

from address_reconcile.progress import CancellationToken, ProgressChannel


def test_publish_never_blocks_and_keeps_latest():
    channel = ProgressChannel(maxsize=3)
    for processed in range(1, 11):
        channel.publish(processed, 10)

    assert channel.poll() == [(8, 10), (9, 10), (10, 10)]
    assert channel.dropped == 7


def test_iteration_stops_when_closed():
    channel = ProgressChannel()
    received = []

    consumer = threading.Thread(target=lambda: received.extend(channel))
    consumer.start()
    channel.publish(1, 2)
    channel.publish(2, 2)
    channel.close()
    consumer.join(timeout=5)

    assert not consumer.is_alive()
    assert received == [(1, 2), (2, 2)]


def test_cancellation_token_keeps_first_reason():
    token = CancellationToken()
    assert not token.cancelled

    token.cancel("timeout")
    token.cancel("user")

    assert token.cancelled
    assert token.reason == "timeout"
