from ilp_sender import Sender, IngressError, TimestampNanos
import sys


def example(host: str = 'localhost', port: int = 9009, ca_file: str = None):
    try:
        sender = Sender(host, port).with_auth(
            'testUser1',
            '5UjEMuA0Pj5pjK8a-fa24dyIf-Es5mYny3oE_Wmus48',
            'fLKYEaoEb9lrn3nkwLDA-M_xnuFOdSt9y0Z7_vWSHLU',
            'Dt5tbS1dEDMSYfym3fgMv0B99szno-dFc1rYF9t0aac')
        if ca_file:
            # Trust a private root CA, e.g. for a self-signed setup.
            sender.enable_tls_with_ca(ca_file)
        else:
            # Trust the OS root certificate store.
            sender.enable_tls()
        with sender:
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

        # Any remaining pending rows will be sent when the `with` block ends.

    except IngressError as e:
        sys.stderr.write(f'Got error: {e}\n')


if __name__ == '__main__':
    example(*sys.argv[1:])
