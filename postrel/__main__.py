from postrel.cli.app import main

main()
