from ilp_sender import Sender, IngressError
import sys


def example(host: str = 'localhost', port: int = 9009):
    sender = Sender().endpoint(host, port)
    if not sender.connect():
        sys.stderr.write(f'Could not connect: {sender.last_error}\n')
        return
    try:
        # A row is: table, then symbols, then other columns, then a timestamp.
        (sender.table('sensors')
            .symbol('loc', 'ny')
            .float64('temp', 23.5)
            .int64('reading_id', 1)
            .boolean('calibrated', True)
            .at(1700000000000000000))
        (sender.table('sensors')
            .symbol('loc', 'sf')
            .float64('temp', 18.25)
            .string('note', 'foggy')
            .at_now())  # The server assigns the timestamp.
        sender.flush()
    except IngressError as e:
        # The sender is closed after any error and can't be reused.
        sys.stderr.write(f'Got error: {e}\n')
    finally:
        sender.close()


if __name__ == '__main__':
    example()
