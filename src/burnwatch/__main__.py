from burnwatch.cli.main import main

main()
