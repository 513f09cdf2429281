from unity_font_importer_cli import run_main_ko


if __name__ == "__main__":
    run_main_ko()
