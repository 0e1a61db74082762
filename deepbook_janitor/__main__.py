from deepbook_janitor.main import run

run()
