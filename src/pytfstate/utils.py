STATES_DIR = 'states'
STATE_FILENAME = 'terraform.tfstate'

def extract_state_name(path: str) -> str:
    # Leading and trailing slashes are not part of the name, inner ones are
    return path.strip('/')

def state_path(name: str) -> str:
    return f'{STATES_DIR}/{name}/{STATE_FILENAME}'

def parse_listen_addr(listen_addr: str) -> tuple[str, int]:
    """Split a `host:port` listen address, an empty host meaning all interfaces."""
    host, sep, port = listen_addr.rpartition(':')
    if not sep or not port.isdigit():
        raise ValueError(f'Invalid listen address "{listen_addr}", expected host:port')

    host = host.strip('[]') or '0.0.0.0'
    return host, int(port)
