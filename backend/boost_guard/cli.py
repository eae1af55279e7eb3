"""CLI for running the service and inspecting guard keys and signatures."""
import argparse
import json
import subprocess
import sys
from pathlib import Path

from boost_guard.core.config import get_settings

BACKEND_DIR = Path(__file__).resolve().parent.parent


def cmd_serve(args):
    """Run the API with uvicorn."""
    import uvicorn

    from boost_guard.main import create_app

    settings = get_settings()
    uvicorn.run(
        create_app(),
        host=args.host or settings.api_host,
        port=args.port or settings.api_port,
        reload=False,
    )
    return 0


def cmd_init_db(args):
    """Create claim ledger tables (use alembic for managed databases)."""
    from boost_guard.core.database import init_db

    init_db()
    print("claim ledger tables ready")
    return 0


def cmd_migrate(args):
    """Apply alembic migrations from the backend directory."""
    return subprocess.call([sys.executable, "-m", "alembic", "upgrade", args.revision], cwd=str(BACKEND_DIR))


def cmd_guards(args):
    """List guard addresses the configured keys can sign for."""
    from boost_guard.services.key_custody import LocalKeyCustody

    custody = LocalKeyCustody(get_settings().guard_private_key_list)
    guards = custody.guards()
    if not guards:
        print("no guard keys configured", file=sys.stderr)
        return 1
    for guard in guards:
        print(guard)
    return 0


def cmd_verify(args):
    """Recover the signer of a claim signature and compare it to the guard."""
    from boost_guard.services.signature_issuer import (build_claim_typed_data,
                                                       recover_signer)

    settings = get_settings()
    typed = build_claim_typed_data(
        args.boost_id,
        args.chain_id,
        args.recipient,
        int(args.amount),
        args.guard,
        domain_name=settings.eip712_domain_name,
        domain_version=settings.eip712_domain_version,
        verifying_contract=settings.boost_contract_address,
    )
    signer = recover_signer(typed, args.signature)
    valid = signer == args.guard.lower()
    print(json.dumps({"signer": signer, "guard": args.guard.lower(), "valid": valid}))
    return 0 if valid else 1


def build_parser():
    p = argparse.ArgumentParser(prog="boost-guard")
    sub = p.add_subparsers(dest="cmd")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(func=cmd_serve)

    init_db = sub.add_parser("init-db", help="Create claim ledger tables")
    init_db.set_defaults(func=cmd_init_db)

    migrate = sub.add_parser("migrate", help="Apply alembic migrations")
    migrate.add_argument("--revision", default="head")
    migrate.set_defaults(func=cmd_migrate)

    guards = sub.add_parser("guards", help="List configured guard addresses")
    guards.set_defaults(func=cmd_guards)

    verify = sub.add_parser("verify", help="Verify a claim signature")
    verify.add_argument("--boost-id", type=int, required=True)
    verify.add_argument("--chain-id", type=int, required=True)
    verify.add_argument("--recipient", required=True)
    verify.add_argument("--amount", required=True, help="Amount in token base units (decimal string)")
    verify.add_argument("--guard", required=True)
    verify.add_argument("--signature", required=True)
    verify.set_defaults(func=cmd_verify)

    return p


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not getattr(args, "func", None):
        parser.print_help()
        return 2
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
