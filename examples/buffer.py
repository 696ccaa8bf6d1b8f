from ilp_sender import Buffer, TimestampNanos


def example():
    # A `Buffer` builds ILP messages without a connection.
    buffer = Buffer()
    buffer.row(
        'line_sender_buffer_example',
        symbols={'id': 'Hola'},
        columns={'price': 111222233333, 'qty': 3.5},
        at=TimestampNanos(111222233333))
    buffer.row(
        'line_sender_example',
        symbols={'id': 'Adios'},
        columns={'price': 111222233343, 'qty': 2.5},
        at=TimestampNanos(111222233343))

    # A row in progress is not part of `peek()`.
    buffer.table('line_sender_example').symbol('id', 'Pending')
    print(buffer.peek().decode('utf-8'), end='')
    print(f'{buffer.row_count} complete rows, {len(buffer)} bytes.')


if __name__ == '__main__':
    example()
