from unity_font_importer_cli import run_main_en


if __name__ == "__main__":
    run_main_en()
