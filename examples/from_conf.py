from ilp_sender import Sender, IngressError, TimestampNanos
import sys


def example():
    try:
        # The same string can be set in the `QDB_CLIENT_CONF` environment
        # variable and loaded with `Sender.from_env()`.
        conf = 'tcp::addr=localhost:9009;init_buf_size=4096;'
        with Sender.from_conf(conf) as sender:
            # Record with provided designated timestamp (using the 'at' param)
            # Notice the designated timestamp is expected in Nanoseconds,
            # but timestamps in other columns are expected in Microseconds.
            # The API provides convenient functions
            sender.row(
                'trades',
                symbols={
                    'symbol': 'ETH-USD',
                    'side': 'sell'},
                columns={
                    'price': 2615.54,
                    'amount': 0.00044,
                   },
                at=TimestampNanos.now())

            # You can call `sender.row` multiple times inside the same `with`
            # block. The client will buffer the rows until flushed.

            # You can flush manually at any point.
            sender.flush()

        # Any remaining pending rows will be sent when the `with` block ends.

    except IngressError as e:
        sys.stderr.write(f'Got error: {e}\n')


if __name__ == '__main__':
    example()
