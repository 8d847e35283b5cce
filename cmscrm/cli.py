"""CMS CRM admin CLI tool (cmscrmctl)."""

import typer

app = typer.Typer(name="cmscrmctl", help="CMS CRM admin backend CLI")
db_app = typer.Typer(help="Database management commands")
app.add_typer(db_app, name="db")


@db_app.command("init")
def db_init():
    """Create all tables that don't exist yet."""
    from cmscrm.db.base import Base
    from cmscrm.db.session import engine
    import cmscrm.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    typer.echo("Tables created")


@db_app.command("seed")
def db_seed(
    sample: bool = typer.Option(False, "--sample", help="Also create demo users"),
):
    """Seed roles, pages, default navigation and the super-admin."""
    from cmscrm.db.session import SessionLocal
    from cmscrm.db.seeds.seed_roles import seed_roles
    from cmscrm.db.seeds.seed_pages import seed_pages, seed_role_pages
    from cmscrm.db.seeds.seed_super_admin import seed_super_admin
    from cmscrm.db.seeds.seed_sample_data import seed_sample_data

    db = SessionLocal()
    try:
        seed_roles(db)
        seed_pages(db)
        seed_role_pages(db)
        seed_super_admin(db)
        if sample:
            seed_sample_data(db)
    finally:
        db.close()
    typer.echo("All seeds applied")


@db_app.command("reset")
def db_reset(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt"),
):
    """Drop and recreate every table (DANGER)."""
    if not yes and not typer.confirm("This will DROP all tables. Continue?"):
        raise typer.Abort()
    from cmscrm.db.base import Base
    from cmscrm.db.session import engine
    import cmscrm.models  # noqa: F401

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    typer.echo("Database reset")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(True, help="Auto-reload"),
):
    """Start the FastAPI development server."""
    import uvicorn
    uvicorn.run("cmscrm.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
