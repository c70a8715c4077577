from keyindex.cli import main

main()
