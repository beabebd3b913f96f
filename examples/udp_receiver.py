#!/usr/bin/env python3
"""Listen for receiver lines over UDP and print each drone's position.

Point a Bluetooth/Wi-Fi sniffer that forwards service data as
``<device>,<hex>`` lines at this host, then run:
    python examples/udp_receiver.py
"""

from odid.collector import Collector
from odid.messages import Location
from odid.transport import FrameReader, UDPTransport

transport = UDPTransport("0.0.0.0", 4210)
reader = FrameReader()
collector = Collector()

try:
    while True:
        data = transport.read(65536)
        if not data:
            continue
        for device_id, frame in reader.feed(data):
            for msg in collector.feed(device_id, frame).messages:
                if isinstance(msg.payload, Location):
                    loc = msg.payload
                    print(f"{device_id}: {loc.latitude:.7f},{loc.longitude:.7f} "
                          f"alt={loc.altitude:.1f}m")
            for kind, warnings in collector.warnings(device_id).items():
                for w in warnings:
                    print(f"{device_id}: {kind}: {w}")
except KeyboardInterrupt:
    pass
finally:
    transport.close()
