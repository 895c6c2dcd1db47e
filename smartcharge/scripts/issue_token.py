import argparse

from smartcharge.auth.security import make_access_token
from smartcharge.core.config import Settings


def main(argv=None):
    p = argparse.ArgumentParser(description="Emitir un token de operador")
    p.add_argument("--operator", required=True, help="Identificador del operador (claim sub)")
    p.add_argument("--ttl", type=int, default=None, help="Vida del token en segundos")
    args = p.parse_args(argv)

    settings = Settings.from_env()
    if args.ttl:
        from dataclasses import replace

        settings = replace(settings, access_ttl=args.ttl)
    token = make_access_token(args.operator.strip(), settings)
    print(token)
    return token


if __name__ == "__main__":
    main()
